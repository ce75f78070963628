"""
Centralized exception hierarchy for phpforge.

Every error raised by the core derives from PhpForgeError so the command
front end can report failures uniformly. Errors that come from a build carry
the path of the retained build log.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Sequence


# ============================================================================
# Base Exceptions
# ============================================================================


class PhpForgeError(Exception):
    """Base exception for all phpforge errors."""

    pass


# ============================================================================
# Host Environment Exceptions
# ============================================================================


class HostEnvironmentError(PhpForgeError):
    """Base exception for problems with the host system itself."""

    pass


class DistributionDetectionError(HostEnvironmentError):
    """Raised when the Linux distribution cannot be identified."""

    pass


class PackageManagerNotFoundError(HostEnvironmentError):
    """Raised when none of the supported system package managers is installed."""

    def __init__(self, probed: Sequence[str]):
        self.probed = list(probed)
        super().__init__(
            "No supported package manager found (looked for: "
            f"{', '.join(self.probed)})"
        )


class InsufficientPermissionsError(HostEnvironmentError):
    """Raised when a managed directory is not writable by this process."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(
            f"Insufficient permissions to write to {path}. "
            "Try running the command with sudo."
        )


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigError(PhpForgeError):
    """Configuration parsing or validation error."""

    pass


# ============================================================================
# Network Exceptions
# ============================================================================


class NetworkError(PhpForgeError):
    """Base exception for network failures."""

    pass


class VersionFetchError(NetworkError):
    """Raised when the upstream release index cannot be queried."""

    pass


# ============================================================================
# Process Exceptions
# ============================================================================


class CommandError(PhpForgeError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, output: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command '{' '.join(self.args_list)}' failed with exit code {returncode}"
        )


# ============================================================================
# Dependency Exceptions
# ============================================================================


class DependencyError(PhpForgeError):
    """Base exception for system dependency errors."""

    pass


class DependencyInstallError(DependencyError):
    """Raised when the system package manager fails to install packages."""

    def __init__(self, packages: Iterable[str], output: str = ""):
        self.packages = list(packages)
        self.output = output
        message = f"Failed to install system packages: {', '.join(self.packages)}"
        if output:
            message += f"\n{output.strip()}"
        super().__init__(message)


# ============================================================================
# Build Exceptions
# ============================================================================


class BuildError(PhpForgeError):
    """Raised when a build stage fails."""

    def __init__(
        self,
        message: str,
        log_path: Optional[Path] = None,
        stage: Optional[str] = None,
    ):
        self.log_path = log_path
        self.stage = stage
        super().__init__(message)


class BinaryVerificationError(BuildError):
    """Raised when no installed binary reports the expected version."""

    pass


class BuildInProgressError(BuildError):
    """Raised when another process is already building the same line."""

    pass


# ============================================================================
# State Exceptions
# ============================================================================


class StateError(PhpForgeError):
    """Base exception for installed-state errors."""

    pass


# ============================================================================
# Version Exceptions
# ============================================================================


class VersionError(PhpForgeError):
    """Base exception for version lookup errors."""

    pass


class UnsupportedVersionError(VersionError):
    """Raised when a major.minor line is not in the supported set."""

    def __init__(self, line: str, supported: Sequence[str]):
        self.line = line
        self.supported = list(supported)
        super().__init__(
            f"Unsupported PHP version: {line} "
            f"(supported: {', '.join(self.supported)})"
        )


class AlreadyInstalledError(VersionError):
    """Raised when installing a line that is already installed."""

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"PHP {line} is already installed")


class NotInstalledError(VersionError):
    """Raised when operating on a line that is not installed."""

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"PHP {line} is not installed")


# ============================================================================
# Extension Exceptions
# ============================================================================


class ExtensionError(PhpForgeError):
    """Base exception for extension errors."""

    pass


class InvalidExtensionError(ExtensionError):
    """Raised when unknown extension names are requested."""

    def __init__(self, invalid: Sequence[str], suggestions: Optional[dict] = None):
        self.invalid = list(invalid)
        self.suggestions = suggestions or {}
        message = f"Unknown extensions: {', '.join(self.invalid)}"
        hints: List[str] = [
            f"{name} (did you mean: {', '.join(similar)}?)"
            for name, similar in self.suggestions.items()
            if similar
        ]
        if hints:
            message += "; " + "; ".join(hints)
        super().__init__(message)


# ============================================================================
# Conflict Exceptions
# ============================================================================


class ConflictError(PhpForgeError):
    """Raised when an unmanaged PHP installation blocks an operation."""

    pass
