"""
Build orchestration: turns an exact PHP release into a verified installation.

Stages run in order and stop at the first failure:

    prepare -> download -> extract -> configure -> compile -> install
            -> verify -> configure-files -> pecl -> publish

Configure and compile run as the invoking user; install runs with elevated
credentials. The workspace is always removed. The build log is removed when
every stage succeeded and kept otherwise, and its path travels with the
raised BuildError.

Side-by-side builds pass `install_root`: `make install` is redirected below
that directory, verification runs against the staged prefix, and nothing in
the live tree changes until `promote()` swaps the staged prefix in.

Extensions that `configure` cannot enable are installed with PECL against
the live prefix, so a staged build runs that stage from `promote()`.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from phpforge.build.config_files import (
    remove_extension_ini,
    write_default_configs,
    write_extension_ini,
)
from phpforge.build.discovery import discover_binary
from phpforge.build.linking import publish_links
from phpforge.build.session import BuildLog, BuildSession, build_log_path
from phpforge.catalog.extensions import (
    EXTENSIONS,
    get_configure_flags,
    separately_installed,
    sort_extensions,
)
from phpforge.core.directory import Layout
from phpforge.core.download import download_file
from phpforge.core.exceptions import BuildError, CommandError, PhpForgeError
from phpforge.core.filesystem import (
    chown_tree,
    extract_archive,
    replace_directory,
    safe_rmtree,
)
from phpforge.core.locking import build_lock
from phpforge.core.process import (
    Privilege,
    RealUser,
    cpu_count,
    get_real_user,
    run_command,
    should_drop_privileges,
)
from phpforge.versions.registry import VersionInfo

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """
    Outcome of a successful build.

    Attributes:
        major_minor: Line that was built
        exact_version: Release that was built
        extensions: Extension set compiled in
        install_path: Live install prefix
        binary_path: Verified binary (inside the staged prefix when staged)
        ini_path: php.ini of the line
        fpm_socket_path: PHP-FPM listen socket of the line
        staged_prefix: Staged install prefix awaiting promote(), if any
    """

    major_minor: str
    exact_version: str
    extensions: List[str]
    install_path: Path
    binary_path: Path
    ini_path: Path
    fpm_socket_path: Path
    staged_prefix: Optional[Path] = None

    @property
    def is_staged(self) -> bool:
        return self.staged_prefix is not None


def staged_prefix_for(install_root: Path, prefix: Path) -> Path:
    """Where `make install INSTALL_ROOT=<root>` puts a prefix."""
    return Path(install_root) / Path(prefix).relative_to(Path(prefix).anchor)


class BuildOrchestrator:
    """
    Runs PHP source builds against a filesystem layout.

    Example:
        >>> orchestrator = BuildOrchestrator(layout)
        >>> result = orchestrator.build(info, ["curl", "mbstring"], is_cli=True)
        >>> result.binary_path
        PosixPath('/opt/phpforge/php/php8.3/bin/php')
    """

    def __init__(
        self,
        layout: Layout,
        jobs: Optional[int] = None,
        user: Optional[RealUser] = None,
        downloader: Callable[..., Path] = download_file,
    ):
        self.layout = layout
        self.jobs = jobs or cpu_count()
        self._user = user
        self._download = downloader

    @property
    def user(self) -> RealUser:
        if self._user is None:
            self._user = get_real_user()
        return self._user

    # ------------------------------------------------------------------
    # Build inputs
    # ------------------------------------------------------------------

    def work_dir(self, exact_version: str) -> Path:
        return self.layout.build_dir / f"phpforge-build-php{exact_version}"

    def configure_flags(self, major_minor: str, extensions: Iterable[str]) -> List[str]:
        """
        Full configure argument list for a line and extension set.

        Extension flags follow the base flags in catalog order; extensions
        without a configure flag contribute nothing.
        """
        etc = self.layout.config_path(major_minor)
        group = self.user.group or "nobody"
        return [
            f"--prefix={self.layout.install_path(major_minor)}",
            f"--with-config-file-path={etc}",
            f"--with-config-file-scan-dir={etc / 'conf.d'}",
            "--enable-fpm",
            f"--with-fpm-user={self.user.name}",
            f"--with-fpm-group={group}",
            "--enable-cli",
        ] + get_configure_flags(extensions)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _prepare(self, session: BuildSession):
        if session.work_dir.exists():
            safe_rmtree(session.work_dir, require_prefix=self.layout.build_dir)
        session.work_dir.mkdir(parents=True)

    def _fetch_source(self, session: BuildSession, sha256: Optional[str]) -> Path:
        filename = session.download_url.rstrip("/").rsplit("/", 1)[-1]
        archive = session.work_dir / filename
        logger.info(f"Downloading {filename}")
        return self._download(
            session.download_url, archive, expected_sha256=sha256
        )

    def _extract(self, session: BuildSession, archive: Path):
        logger.info(f"Extracting {archive.name}")
        extract_archive(archive, session.work_dir)
        if not session.source_dir.is_dir():
            raise BuildError(
                f"Archive did not contain {session.source_dir.name}/",
                stage="extract",
            )
        if should_drop_privileges():
            chown_tree(session.work_dir, self.user.uid, self.user.gid)

    def _configure(self, session: BuildSession):
        logger.info(f"Configuring PHP {session.exact_version}")
        run_command(
            ["/bin/bash", "./configure"] + session.configure_flags,
            privilege=Privilege.USER,
            cwd=session.source_dir,
        )

    def _compile(self, session: BuildSession):
        logger.info(f"Compiling PHP {session.exact_version} with {self.jobs} jobs")
        run_command(
            ["make", f"-j{self.jobs}"],
            privilege=Privilege.USER,
            cwd=session.source_dir,
        )

    def _install(self, session: BuildSession, install_root: Optional[Path]):
        args = ["make", "install"]
        if install_root is not None:
            args.append(f"INSTALL_ROOT={install_root}")
            logger.info(f"Installing PHP {session.exact_version} to staging area")
        else:
            logger.info(f"Installing PHP {session.exact_version}")
        run_command(args, privilege=Privilege.ELEVATED, cwd=session.source_dir)

    # ------------------------------------------------------------------
    # PECL extensions
    # ------------------------------------------------------------------

    def _is_loaded(self, binary: Path, name: str) -> bool:
        try:
            result = run_command(
                [binary, "-m"], privilege=Privilege.USER, timeout=10, check=False
            )
        except CommandError:
            return False
        modules = {line.strip().lower() for line in result.output.splitlines()}
        return result.succeeded and name.lower() in modules

    def install_separate_extensions(
        self,
        major_minor: str,
        prefix: Path,
        binary: Path,
        extensions: Iterable[str],
    ) -> List[str]:
        """
        Install the PECL extensions of a line and enable them in conf.d.

        Modules that `php -m` already lists are left alone. Catalog
        extensions of this kind that are not wanted lose their ini file.

        Returns:
            Names that were installed by this call
        """
        wanted = separately_installed(extensions)
        for name in separately_installed(EXTENSIONS):
            if name not in wanted and remove_extension_ini(self.layout, major_minor, name):
                logger.info(f"Disabled {name} for PHP {major_minor}")

        installed = []
        for name in wanted:
            if self._is_loaded(binary, name):
                logger.debug(f"{name} is already loaded by {binary}")
                continue
            logger.info(f"Installing {name} with PECL")
            run_command(
                [Path(prefix) / "bin" / "pecl", "install", name],
                privilege=Privilege.ELEVATED,
            )
            write_extension_ini(self.layout, major_minor, name)
            installed.append(name)
        return installed

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def build(
        self,
        info: VersionInfo,
        extensions: Iterable[str],
        is_cli: bool = False,
        install_root: Optional[Path] = None,
    ) -> BuildResult:
        """
        Build, install, verify and (unless staged) publish a release.

        Args:
            info: Release to build
            extensions: Extensions to compile in
            is_cli: Also publish the generic `php` link
            install_root: Stage the install below this directory instead
                of writing the live prefix

        Returns:
            BuildResult describing the verified binary

        Raises:
            BuildInProgressError: If the line is already being built
            BuildError: If any stage fails (log_path names the retained log)
        """
        extensions = sort_extensions(extensions)
        major_minor = info.major_minor
        prefix = self.layout.install_path(major_minor)

        session = BuildSession(
            major_minor=major_minor,
            exact_version=info.exact_version,
            download_url=info.download_url,
            source_package=info.source_package,
            work_dir=self.work_dir(info.exact_version),
            log_path=build_log_path(self.layout.build_log_dir, info.exact_version),
        )

        with build_lock(self.layout.build_dir, major_minor):
            with BuildLog(session.log_path) as build_log:
                logger.debug(
                    f"Building PHP {info.exact_version} from {info.download_url} "
                    f"with extensions: {', '.join(extensions) or '(none)'}"
                )
                try:
                    result = self._run_stages(
                        session, info, extensions, prefix, is_cli, install_root
                    )
                except BuildError as e:
                    e.stage = e.stage or session.stage
                    e.log_path = session.log_path
                    logger.debug(f"Build failed during {e.stage}: {e}")
                    raise
                except (PhpForgeError, OSError) as e:
                    logger.debug(f"Build failed during {session.stage}: {e}")
                    raise BuildError(
                        f"PHP {info.exact_version} build failed during {session.stage}",
                        log_path=session.log_path,
                        stage=session.stage,
                    ) from e
                finally:
                    self._cleanup(session)

                session.succeeded = True
                build_log.discard()

        logger.info(f"PHP {info.exact_version} built successfully")
        return result

    def _run_stages(
        self,
        session: BuildSession,
        info: VersionInfo,
        extensions: List[str],
        prefix: Path,
        is_cli: bool,
        install_root: Optional[Path],
    ) -> BuildResult:
        session.stage = "prepare"
        self._prepare(session)
        session.configure_flags = self.configure_flags(info.major_minor, extensions)

        session.stage = "download"
        archive = self._fetch_source(session, info.sha256)

        session.stage = "extract"
        self._extract(session, archive)

        session.stage = "configure"
        self._configure(session)

        session.stage = "compile"
        self._compile(session)

        session.stage = "install"
        self._install(session, install_root)

        session.stage = "verify"
        staged = staged_prefix_for(install_root, prefix) if install_root else None
        session.binary_path = discover_binary(
            staged or prefix,
            info.exact_version,
            self.layout.system_bin_dir,
            info.major_minor,
            include_system=staged is None,
        )

        session.stage = "configure-files"
        paths = write_default_configs(self.layout, info.major_minor, self.user)

        if staged is None:
            session.stage = "pecl"
            self.install_separate_extensions(
                info.major_minor, prefix, session.binary_path, extensions
            )

            session.stage = "publish"
            publish_links(self.layout, info.major_minor, session.binary_path, is_cli)

        return BuildResult(
            major_minor=info.major_minor,
            exact_version=info.exact_version,
            extensions=list(extensions),
            install_path=prefix,
            binary_path=session.binary_path,
            ini_path=paths.ini_path,
            fpm_socket_path=paths.fpm_socket,
            staged_prefix=staged,
        )

    def _cleanup(self, session: BuildSession):
        try:
            safe_rmtree(session.work_dir, require_prefix=self.layout.build_dir)
        except (PhpForgeError, ValueError) as e:
            logger.warning(f"Could not remove build workspace {session.work_dir}: {e}")

    def promote(self, result: BuildResult, is_cli: bool = False) -> Path:
        """
        Swap a staged install into the live prefix and publish it.

        Returns:
            Path of the binary inside the live prefix

        Raises:
            FilesystemError: If the swap fails (the live prefix is restored)
            BuildError: If a PECL extension cannot be installed
        """
        if not result.is_staged:
            return result.binary_path

        try:
            relative = result.binary_path.relative_to(result.staged_prefix.resolve())
        except ValueError:
            relative = None

        replace_directory(result.install_path, result.staged_prefix)
        binary = result.install_path / relative if relative else result.binary_path

        try:
            self.install_separate_extensions(
                result.major_minor, result.install_path, binary, result.extensions
            )
        except (PhpForgeError, OSError) as e:
            raise BuildError(
                f"PHP {result.exact_version} extension install failed: {e}",
                stage="pecl",
            ) from e

        publish_links(self.layout, result.major_minor, binary, is_cli)
        result.binary_path = binary
        result.staged_prefix = None
        logger.debug(f"Promoted staged PHP {result.exact_version} to {result.install_path}")
        return binary
