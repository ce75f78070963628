"""
Service layer for managing installed PHP versions.

PhpManager wires the state store, version registry, dependency resolver and
build orchestrator together. Every operation that changes what is installed
commits to the state store only after the filesystem work succeeded; a
failure leaves both the store and the live installation as they were.

Rebuilds (extension changes, upgrades, explicit rebuilds) are built side by
side in a staging directory and swapped in only after the new binary
verified.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from phpforge.build.linking import (
    detect_unmanaged_php,
    find_broken_links,
    publish_cli_link,
    unpublish_links,
)
from phpforge.build.orchestrator import BuildOrchestrator, BuildResult
from phpforge.catalog.extensions import (
    sort_extensions,
    suggest_similar,
    validate_extensions,
)
from phpforge.config.parser import Settings
from phpforge.core.directory import (
    Layout,
    check_install_permissions,
    ensure_directories,
)
from phpforge.core.exceptions import (
    AlreadyInstalledError,
    ConflictError,
    InvalidExtensionError,
    PackageManagerNotFoundError,
    PhpForgeError,
    VersionFetchError,
)
from phpforge.core.filesystem import remove_path, safe_rmtree
from phpforge.core.platform import detect_distribution, detect_package_manager
from phpforge.core.state import InstalledVersion, StateStore
from phpforge.dependencies.resolver import DependencyResolver
from phpforge.versions.registry import VersionInfo, VersionRegistry, normalize_line

logger = logging.getLogger(__name__)


@dataclass
class OperationResult:
    """
    Outcome of a state-changing operation.

    Single-line operations raise PhpForgeError on failure and only return
    successful results; `update` reports a failed line here instead.

    Attributes:
        success: Whether the operation completed
        record: The resulting installed record (None after uninstall)
        error: Failure message
        log_path: Retained build log of a failed build
        message: Short human-readable summary
    """

    success: bool
    record: Optional[InstalledVersion] = None
    error: Optional[str] = None
    log_path: Optional[Path] = None
    message: str = ""


@dataclass
class CheckResult:
    """Result of one doctor check."""

    name: str
    passed: bool
    message: str
    fix_command: Optional[str] = None


@dataclass
class DoctorReport:
    """Read-only health report of the host and the managed installs."""

    checks: List[CheckResult] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return all(check.passed for check in self.checks)

    def add(self, name: str, passed: bool, message: str, fix_command: Optional[str] = None):
        self.checks.append(CheckResult(name, passed, message, fix_command))


class PhpManager:
    """
    Install, rebuild and remove PHP versions.

    Example:
        >>> manager = PhpManager(load_settings())
        >>> manager.install("8.3", ["curl", "mbstring"])
        >>> manager.set_cli("8.3")
        >>> manager.add_extensions("8.3", ["intl"])
    """

    def __init__(
        self,
        settings: Settings,
        layout: Optional[Layout] = None,
        store: Optional[StateStore] = None,
        registry: Optional[VersionRegistry] = None,
        resolver: Optional[DependencyResolver] = None,
        orchestrator: Optional[BuildOrchestrator] = None,
    ):
        self.settings = settings
        self.layout = layout or Layout.from_settings(settings)
        self.store = store or StateStore(self.layout.state_file)
        self.registry = registry or VersionRegistry.from_settings(
            settings, self.layout.cache_file
        )
        self.resolver = resolver or DependencyResolver()
        self.orchestrator = orchestrator or BuildOrchestrator(
            self.layout, jobs=settings.jobs
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_extensions(self, names: Iterable[str]) -> List[str]:
        valid, invalid = validate_extensions(names)
        if invalid:
            raise InvalidExtensionError(
                invalid, {name: suggest_similar(name) for name in invalid}
            )
        return valid

    def _require_installed(self, line: str) -> InstalledVersion:
        return self.store.require(normalize_line(line))

    def _info_for_installed(
        self, record: InstalledVersion, force_refresh: bool = False
    ) -> VersionInfo:
        """Release information for the exact version a record already has."""
        filename = f"php-{record.exact_version}.tar.gz"
        sha256 = None
        try:
            cache = self.registry.get_latest_versions(force_refresh)
            sha256 = cache.checksums.get(record.exact_version)
        except VersionFetchError as e:
            logger.debug(f"Rebuilding without a published checksum: {e}")

        return VersionInfo(
            major_minor=record.major_minor,
            exact_version=record.exact_version,
            download_url=self.settings.distribution_url.format(filename=filename),
            sha256=sha256,
        )

    def _staged_build(
        self, record: InstalledVersion, info: VersionInfo, extensions: List[str]
    ) -> BuildResult:
        """Build into a staging root and swap it over the live prefix."""
        self.layout.build_dir.mkdir(parents=True, exist_ok=True)
        install_root = Path(
            tempfile.mkdtemp(
                prefix=f"phpforge-stage-php{record.major_minor}-",
                dir=self.layout.build_dir,
            )
        )
        try:
            # mkdtemp creates 0700; the staged binary is verified as the invoking user
            os.chmod(install_root, 0o755)
            result = self.orchestrator.build(
                info, extensions, is_cli=record.is_cli, install_root=install_root
            )
            self.orchestrator.promote(result, is_cli=record.is_cli)
        finally:
            safe_rmtree(install_root, require_prefix=self.layout.build_dir)
        return result

    def _rebuild_as(
        self, record: InstalledVersion, info: VersionInfo, extensions: Iterable[str]
    ) -> InstalledVersion:
        extensions = sort_extensions(extensions)
        check_install_permissions(self.layout)
        ensure_directories(self.layout)
        self.resolver.install_build_dependencies()
        self.resolver.install_extension_dependencies(extensions)

        result = self._staged_build(record, info, extensions)
        return self.store.mark_rebuilt(
            record.major_minor,
            info.exact_version,
            extensions,
            ini_path=str(result.ini_path),
            fpm_socket_path=str(result.fpm_socket_path),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_installed(self) -> List[InstalledVersion]:
        return self.store.list_installed()

    def available(self, force_refresh: bool = False) -> List[VersionInfo]:
        return self.registry.list_available(force_refresh)

    def get(self, line: str) -> InstalledVersion:
        """
        Raises:
            NotInstalledError: If the line is not installed
        """
        return self._require_installed(line)

    # ------------------------------------------------------------------
    # Install and uninstall
    # ------------------------------------------------------------------

    def install(
        self,
        line: str,
        extensions: Optional[Iterable[str]] = None,
        force_refresh: bool = False,
    ) -> OperationResult:
        """
        Build and install the latest release of a line.

        Args:
            line: major.minor line, e.g. "8.3"
            extensions: Extensions to enable (defaults from settings)
            force_refresh: Bypass the version cache

        Raises:
            AlreadyInstalledError: If the line is installed (nothing is written)
            UnsupportedVersionError: If the line is not supported
            InvalidExtensionError: If an extension name is unknown
            BuildError: If the build fails
        """
        line = self.registry.require_supported(line)
        if self.store.is_installed(line):
            raise AlreadyInstalledError(line)

        if extensions is None:
            extensions = self.settings.default_extensions
        extensions = sort_extensions(self._validate_extensions(extensions))

        check_install_permissions(self.layout)
        info = self.registry.get_version_info(line, force_refresh)

        for conflict in detect_unmanaged_php(self.layout):
            if conflict.path == self.layout.global_binary:
                logger.warning(
                    f"Unmanaged PHP found: {conflict}. CLI binding is unavailable "
                    f"until {conflict.path} is removed"
                )
            else:
                logger.warning(f"Unmanaged PHP found on PATH: {conflict}")

        ensure_directories(self.layout)
        self.resolver.install_build_dependencies()
        self.resolver.install_extension_dependencies(extensions)

        logger.info(f"Building PHP {info.exact_version} from source")
        result = self.orchestrator.build(info, extensions)

        record = self.store.add_installed(
            line,
            info.exact_version,
            result.install_path,
            extensions,
            fpm_socket_path=str(result.fpm_socket_path),
            ini_path=str(result.ini_path),
        )
        return OperationResult(
            success=True,
            record=record,
            message=f"PHP {info.exact_version} installed to {result.install_path}",
        )

    def uninstall(self, line: str) -> OperationResult:
        """
        Remove an installed line with its links, runtime files and configuration.

        Raises:
            NotInstalledError: If the line is not installed
        """
        record = self._require_installed(line)
        line = record.major_minor
        check_install_permissions(self.layout)

        unpublish_links(self.layout, line, is_cli=record.is_cli)
        for runtime_file in (self.layout.fpm_pid(line), self.layout.fpm_socket(line)):
            remove_path(runtime_file)

        safe_rmtree(Path(record.install_path), require_prefix=self.layout.base_dir)
        safe_rmtree(self.layout.config_path(line), require_prefix=self.layout.base_dir)

        self.store.remove_installed(line)
        return OperationResult(
            success=True, message=f"PHP {record.exact_version} uninstalled"
        )

    # ------------------------------------------------------------------
    # Rebuilds and extensions
    # ------------------------------------------------------------------

    def rebuild(self, line: str, force_refresh: bool = False) -> OperationResult:
        """
        Rebuild an installed line with its effective extension set.

        Staged extension changes are applied. On failure the previous
        installation and the stored record are untouched.

        Raises:
            NotInstalledError: If the line is not installed
            BuildError: If the build fails
        """
        record = self._require_installed(line)
        extensions = record.effective_extensions()
        info = self._info_for_installed(record, force_refresh)
        updated = self._rebuild_as(record, info, extensions)
        return OperationResult(
            success=True,
            record=updated,
            message=f"PHP {updated.exact_version} rebuilt",
        )

    def update_extensions(self, line: str, extensions: Iterable[str]) -> OperationResult:
        """
        Rebuild a line with exactly `extensions` and commit on success.

        Raises:
            NotInstalledError: If the line is not installed
            InvalidExtensionError: If an extension name is unknown
            BuildError: If the build fails
        """
        record = self._require_installed(line)
        proposed = sort_extensions(self._validate_extensions(extensions))
        previous = list(record.extensions)

        info = self._info_for_installed(record)
        logger.debug(
            f"Changing PHP {record.major_minor} extensions from "
            f"{', '.join(previous) or '(none)'} to {', '.join(proposed) or '(none)'}"
        )
        updated = self._rebuild_as(record, info, proposed)
        return OperationResult(
            success=True,
            record=updated,
            message=f"PHP {updated.exact_version} rebuilt with {len(proposed)} extensions",
        )

    def add_extensions(
        self, line: str, names: Iterable[str], rebuild: bool = True
    ) -> OperationResult:
        """
        Enable extensions on an installed line.

        With rebuild=False the change is only staged for the next rebuild.

        Raises:
            NotInstalledError: If the line is not installed
            InvalidExtensionError: If an extension name is unknown
        """
        record = self._require_installed(line)
        names = self._validate_extensions(names)

        if not rebuild:
            staged = self.store.stage_extensions(record.major_minor, add=names)
            return OperationResult(
                success=True,
                record=staged,
                message=f"Staged for next rebuild: {', '.join(staged.pending_add) or '(nothing)'}",
            )

        proposed = set(record.effective_extensions()) | set(names)
        if set(proposed) == set(record.extensions) and not record.has_pending_changes:
            return OperationResult(
                success=True, record=record, message="Extensions already enabled"
            )

        return self.update_extensions(record.major_minor, proposed)

    def remove_extensions(
        self, line: str, names: Iterable[str], rebuild: bool = True
    ) -> OperationResult:
        """
        Disable extensions on an installed line.

        Raises:
            NotInstalledError: If the line is not installed
            InvalidExtensionError: If an extension name is unknown
        """
        record = self._require_installed(line)
        names = self._validate_extensions(names)

        if not rebuild:
            staged = self.store.stage_extensions(record.major_minor, remove=names)
            return OperationResult(
                success=True,
                record=staged,
                message=f"Staged for removal: {', '.join(staged.pending_remove) or '(nothing)'}",
            )

        proposed = set(record.effective_extensions()) - set(names)
        if set(proposed) == set(record.extensions) and not record.has_pending_changes:
            return OperationResult(
                success=True, record=record, message="Extensions already disabled"
            )

        return self.update_extensions(record.major_minor, proposed)

    # ------------------------------------------------------------------
    # CLI binding
    # ------------------------------------------------------------------

    def set_cli(self, line: str) -> OperationResult:
        """
        Bind the generic `php` name to an installed line.

        Raises:
            NotInstalledError: If the line is not installed
            ConflictError: If an unmanaged PHP occupies the generic name
        """
        record = self._require_installed(line)

        for conflict in detect_unmanaged_php(self.layout):
            if conflict.path == self.layout.global_binary:
                raise ConflictError(
                    f"Unmanaged PHP at {conflict}; remove it before setting the CLI version"
                )
            logger.warning(f"Another PHP is on PATH: {conflict}")

        check_install_permissions(self.layout)
        publish_cli_link(self.layout, record.major_minor)
        self.store.set_cli(record.major_minor)
        return OperationResult(
            success=True,
            record=self.store.get(record.major_minor),
            message=f"PHP {record.exact_version} is now the CLI version",
        )

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def check_updates(
        self, line: Optional[str] = None, force_refresh: bool = True
    ) -> Dict[str, Tuple[str, str]]:
        """
        Find installed lines with a newer upstream release.

        Returns:
            line -> (installed exact version, latest exact version)

        Raises:
            NotInstalledError: If `line` is given but not installed
        """
        if line is not None:
            records = [self._require_installed(line)]
        else:
            records = self.store.list_installed()

        installed = {r.major_minor: r.exact_version for r in records}
        if not installed:
            return {}
        updates = self.registry.check_for_updates(installed, force_refresh)
        return {mm: (installed[mm], latest) for mm, latest in sorted(updates.items())}

    def update(
        self, line: Optional[str] = None, force_refresh: bool = True
    ) -> Dict[str, OperationResult]:
        """
        Rebuild every outdated line at its latest release.

        A failure of one line does not stop the others.

        Returns:
            line -> OperationResult, for outdated lines only
        """
        results: Dict[str, OperationResult] = {}
        for mm, (current, latest) in self.check_updates(line, force_refresh).items():
            record = self.store.require(mm)
            logger.info(f"Updating PHP {mm}: {current} -> {latest}")
            try:
                info = self.registry.get_version_info(mm)
                updated = self._rebuild_as(record, info, record.effective_extensions())
            except PhpForgeError as e:
                logger.error(f"Failed to update PHP {mm}: {e}")
                results[mm] = OperationResult(
                    success=False,
                    record=record,
                    error=str(e),
                    log_path=getattr(e, "log_path", None),
                )
                continue
            results[mm] = OperationResult(
                success=True,
                record=updated,
                message=f"PHP {mm} updated from {current} to {latest}",
            )
        return results

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def doctor(self) -> DoctorReport:
        """Inspect the host and the managed installs without changing anything."""
        report = DoctorReport()

        distribution, error = detect_distribution()
        report.add(
            "distribution",
            error is None,
            distribution if error is None else str(error),
        )

        try:
            manager = detect_package_manager()
            report.add("package manager", True, manager.command)
        except PackageManagerNotFoundError as e:
            report.add("package manager", False, str(e))

        records = self.store.list_installed()
        for record in records:
            name = f"PHP {record.major_minor}"
            if not Path(record.install_path).is_dir():
                report.add(
                    name,
                    False,
                    f"install directory missing: {record.install_path}",
                    f"phpforge rebuild {record.major_minor}",
                )
                continue

            missing = self.resolver.check_system_dependencies(record.extensions)
            if missing:
                report.add(
                    name,
                    False,
                    f"missing system dependencies for: {', '.join(missing)}",
                    f"phpforge rebuild {record.major_minor}",
                )
            elif record.needs_rebuild:
                report.add(
                    name,
                    False,
                    "staged extension changes are not built yet",
                    f"phpforge rebuild {record.major_minor}",
                )
            else:
                report.add(name, True, f"{record.exact_version} ({record.install_path})")

        conflicts = detect_unmanaged_php(self.layout)
        report.add(
            "conflicts",
            not conflicts,
            "; ".join(str(c) for c in conflicts) if conflicts else "no unmanaged PHP found",
        )

        broken = find_broken_links(self.layout, [r.major_minor for r in records])
        report.add(
            "links",
            not broken,
            "broken: " + ", ".join(str(p) for p in broken) if broken else "all links valid",
        )
        return report
