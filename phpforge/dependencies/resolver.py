"""
System dependency resolution for PHP builds.

The resolver turns extension names into distribution-specific package names,
installs them through the detected package manager, and probes whether a
dependency is already satisfied.

Availability probing is layered because package naming drifts across
distributions. A dependency counts as present if any of these succeed:
- the package manager reports one of its packages as installed
- one of its probe commands resolves on PATH
- one of its shared libraries exists in a standard library directory
- one of its pkg-config modules resolves
"""

import logging
import platform
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from phpforge.catalog.dependencies import (
    BUILD_DEPENDENCIES,
    DEPENDENCIES,
    DependencyConfig,
)
from phpforge.catalog.extensions import EXTENSIONS, sort_extensions
from phpforge.catalog.package_managers import PackageManagerProfile
from phpforge.core.exceptions import (
    CommandError,
    DependencyInstallError,
    PackageManagerNotFoundError,
)
from phpforge.core.platform import detect_package_manager
from phpforge.core.process import Privilege, run_command

logger = logging.getLogger(__name__)

LIBRARY_DIRS = (
    "/usr/lib",
    "/usr/local/lib",
    "/usr/lib64",
    "/lib",
    "/opt/homebrew/lib",
)


def _multiarch_dirs() -> List[str]:
    """Debian-style multiarch library directories for this machine."""
    machine = platform.machine()
    if not machine:
        return []
    return [f"/usr/lib/{machine}-linux-gnu", f"/lib/{machine}-linux-gnu"]


class DependencyResolver:
    """
    Resolves and installs the system packages PHP extensions need.

    The package manager is detected lazily on first use, so constructing a
    resolver never touches the host.

    Attributes:
        quiet: Demote progress messages to debug level
    """

    def __init__(
        self,
        package_manager: Optional[PackageManagerProfile] = None,
        dependencies: Mapping[str, DependencyConfig] = DEPENDENCIES,
        library_dirs: Optional[Sequence[str]] = None,
        quiet: bool = False,
    ):
        self._package_manager = package_manager
        self.dependencies = dependencies
        self.library_dirs = (
            list(library_dirs)
            if library_dirs is not None
            else list(LIBRARY_DIRS) + _multiarch_dirs()
        )
        self.quiet = quiet

    @property
    def package_manager(self) -> PackageManagerProfile:
        """
        The bound package manager.

        Raises:
            PackageManagerNotFoundError: If no supported manager is installed
        """
        if self._package_manager is None:
            self._package_manager = detect_package_manager()
        return self._package_manager

    def _progress(self, message: str):
        logger.log(logging.DEBUG if self.quiet else logging.INFO, message)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def dependencies_for(self, extensions: Iterable[str]) -> List[str]:
        """Logical dependency names needed by `extensions`, sorted and unique."""
        names = set()
        for extension in extensions:
            definition = EXTENSIONS.get(extension.strip().lower())
            if definition is None:
                logger.debug(f"No catalog entry for extension '{extension}'")
                continue
            names.update(definition.dependencies)
        return sorted(names)

    def packages_for_dependencies(self, dependency_names: Iterable[str]) -> List[str]:
        """System package names for logical dependencies, sorted and unique."""
        manager = self.package_manager.name
        packages = set()
        for name in dependency_names:
            config = self.dependencies.get(name)
            if config is None:
                logger.warning(f"Dependency '{name}' is not in the registry")
                continue
            packages.update(config.packages_for(manager))
        return sorted(packages)

    def resolve_packages(self, extensions: Iterable[str]) -> List[str]:
        """
        Compute the system packages needed by a set of extensions.

        The result is sorted and contains no duplicates, so it does not
        depend on the order of `extensions`. Extensions without
        dependencies contribute nothing.
        """
        return self.packages_for_dependencies(self.dependencies_for(extensions))

    # ------------------------------------------------------------------
    # Installation
    # ------------------------------------------------------------------

    def _install_packages(self, packages: List[str]) -> List[str]:
        if not packages:
            self._progress("No system packages to install")
            return []

        profile = self.package_manager
        self._progress(
            f"Installing {len(packages)} system packages with {profile.command}: "
            f"{' '.join(packages)}"
        )
        try:
            run_command(profile.install_command(packages), privilege=Privilege.ELEVATED)
        except CommandError as e:
            raise DependencyInstallError(packages, e.output) from e

        self._progress("System packages installed")
        return packages

    def install_extension_dependencies(self, extensions: Iterable[str]) -> List[str]:
        """
        Install the system packages for `extensions` in one manager call.

        Returns:
            The package names passed to the package manager

        Raises:
            DependencyInstallError: If the package manager exits non-zero
            PackageManagerNotFoundError: If no package manager is available
        """
        return self._install_packages(self.resolve_packages(extensions))

    def install_build_dependencies(self) -> List[str]:
        """Install the toolchain and libraries every PHP build needs."""
        return self._install_packages(self.packages_for_dependencies(BUILD_DEPENDENCIES))

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    def _package_installed(self, config: DependencyConfig) -> bool:
        try:
            profile = self.package_manager
        except PackageManagerNotFoundError as e:
            logger.debug(f"Skipping package query: {e}")
            return False
        if shutil.which(profile.query_command) is None:
            return False

        for package in config.packages_for(profile.name):
            result = run_command(
                profile.query_command_for(package),
                privilege=Privilege.USER,
                timeout=30,
                check=False,
            )
            if result.succeeded:
                return True
        return False

    def _command_available(self, config: DependencyConfig) -> bool:
        return any(shutil.which(command) for command in config.commands)

    def _library_available(self, config: DependencyConfig) -> bool:
        for library in config.libraries:
            for directory in self.library_dirs:
                base = Path(directory)
                if not base.is_dir():
                    continue
                if any(base.glob(f"{library}.so*")) or (base / f"{library}.a").exists():
                    return True
        return False

    def _pkg_config_available(self, config: DependencyConfig) -> bool:
        if not config.pkg_config or shutil.which("pkg-config") is None:
            return False
        for module in config.pkg_config:
            result = run_command(
                ["pkg-config", "--exists", module],
                privilege=Privilege.USER,
                timeout=10,
                check=False,
            )
            if result.succeeded:
                return True
        return False

    def is_dependency_available(self, name: str) -> bool:
        """
        Probe whether a logical dependency is satisfied on this host.

        Probes run from cheapest to most expensive and stop at the first hit.
        """
        config = self.dependencies.get(name)
        if config is None:
            return False

        for probe in (
            self._command_available,
            self._library_available,
            self._pkg_config_available,
            self._package_installed,
        ):
            try:
                if probe(config):
                    logger.debug(f"Dependency '{name}' satisfied ({probe.__name__})")
                    return True
            except CommandError as e:
                logger.debug(f"Probe {probe.__name__} for '{name}' failed: {e}")

        return False

    def check_system_dependencies(self, extensions: Iterable[str]) -> List[str]:
        """
        Return the extensions whose system dependencies are missing.

        This is a best-effort probe, not an authoritative answer.
        """
        missing: List[str] = []
        cache: Dict[str, bool] = {}

        for extension in sort_extensions(extensions):
            definition = EXTENSIONS.get(extension)
            if definition is None:
                continue
            for dependency in definition.dependencies:
                if dependency not in cache:
                    cache[dependency] = self.is_dependency_available(dependency)
                if not cache[dependency]:
                    missing.append(extension)
                    break

        if missing:
            self._progress(f"Missing system dependencies for: {', '.join(missing)}")
        return missing
