"""
Core functionality for phpforge.

This package contains the foundational modules that other components depend on.
"""

from .exceptions import (
    PhpForgeError,
    HostEnvironmentError,
    DistributionDetectionError,
    PackageManagerNotFoundError,
    InsufficientPermissionsError,
    ConfigError,
    NetworkError,
    VersionFetchError,
    CommandError,
    DependencyError,
    DependencyInstallError,
    BuildError,
    BinaryVerificationError,
    BuildInProgressError,
    StateError,
    VersionError,
    UnsupportedVersionError,
    AlreadyInstalledError,
    NotInstalledError,
    ExtensionError,
    InvalidExtensionError,
    ConflictError,
)

from .directory import (
    Layout,
    check_install_permissions,
    ensure_directories,
    get_user_config_dir,
)

from .process import (
    Privilege,
    RealUser,
    CommandResult,
    run_command,
    get_real_user,
    cpu_count,
)

from .platform import detect_distribution, detect_package_manager

from .state import InstalledVersion, StateStore

__all__ = [
    # Exceptions
    "PhpForgeError",
    "HostEnvironmentError",
    "DistributionDetectionError",
    "PackageManagerNotFoundError",
    "InsufficientPermissionsError",
    "ConfigError",
    "NetworkError",
    "VersionFetchError",
    "CommandError",
    "DependencyError",
    "DependencyInstallError",
    "BuildError",
    "BinaryVerificationError",
    "BuildInProgressError",
    "StateError",
    "VersionError",
    "UnsupportedVersionError",
    "AlreadyInstalledError",
    "NotInstalledError",
    "ExtensionError",
    "InvalidExtensionError",
    "ConflictError",
    # Layout
    "Layout",
    "check_install_permissions",
    "ensure_directories",
    "get_user_config_dir",
    # Processes
    "Privilege",
    "RealUser",
    "CommandResult",
    "run_command",
    "get_real_user",
    "cpu_count",
    # Host
    "detect_distribution",
    "detect_package_manager",
    # State
    "InstalledVersion",
    "StateStore",
]
