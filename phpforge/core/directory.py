"""
Directory layout for phpforge.

Managed tree (default root /opt/phpforge/):
    - bin/                  : Managed binaries (php8.3 -> php/php8.3/bin/php)
    - php/php<mm>/          : Per-version install prefixes
    - php/run/              : PHP-FPM sockets and pid files
    - php/logs/             : PHP-FPM logs
    - etc/php<mm>/          : php.ini, conf.d/ and FPM configuration

System binaries directory (default /usr/local/bin/):
    - php<mm>               : Published version-scoped symlink
    - php                   : Generic symlink to the CLI-bound version

User config directory (~/.config/phpforge/, of the sudo-invoking user):
    - config.yaml           : Optional settings
    - state.json            : Installed versions
    - version_cache.json    : Cached upstream release index
    - logs/                 : Build logs retained after failures
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List

from phpforge.core.exceptions import PhpForgeError
from phpforge.core.process import check_write_access, get_real_user

if TYPE_CHECKING:
    from phpforge.config.parser import Settings


class DirectoryError(PhpForgeError):
    """Raised when the managed directory tree cannot be created."""

    pass


def get_user_config_dir() -> Path:
    """
    Get the phpforge config directory of the invoking user.

    Under sudo this is the original user's directory, not root's.

    Example:
        >>> get_user_config_dir()
        PosixPath('/home/alice/.config/phpforge')
    """
    if os.environ.get("SUDO_USER") and os.geteuid() == 0:
        home = get_real_user().home
    else:
        home = Path.home()
    return home / ".config" / "phpforge"


@dataclass(frozen=True)
class Layout:
    """
    Resolved filesystem layout.

    Attributes:
        base_dir: Root of the managed tree
        bin_dir: Managed binaries directory
        php_dir: Parent of per-version install prefixes
        etc_dir: Parent of per-version configuration directories
        run_dir: PHP-FPM socket and pid directory
        log_dir: PHP-FPM log directory
        system_bin_dir: Directory on PATH receiving published symlinks
        build_dir: Parent of temporary build workspaces
        config_dir: User config directory (state, cache, build logs)
    """

    base_dir: Path
    bin_dir: Path
    php_dir: Path
    etc_dir: Path
    run_dir: Path
    log_dir: Path
    system_bin_dir: Path
    build_dir: Path
    config_dir: Path

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Layout":
        base = Path(settings.base_dir)
        php_dir = base / "php"
        return cls(
            base_dir=base,
            bin_dir=base / "bin",
            php_dir=php_dir,
            etc_dir=base / "etc",
            run_dir=php_dir / "run",
            log_dir=php_dir / "logs",
            system_bin_dir=Path(settings.system_bin_dir),
            build_dir=Path(settings.build_dir or tempfile.gettempdir()),
            config_dir=get_user_config_dir(),
        )

    # Per-version paths

    def install_path(self, line: str) -> Path:
        """Install prefix for a major.minor line."""
        return self.php_dir / f"php{line}"

    def config_path(self, line: str) -> Path:
        """Configuration directory (php.ini and FPM) for a line."""
        return self.etc_dir / f"php{line}"

    def managed_binary(self, line: str) -> Path:
        """Version-scoped symlink in the managed bin directory."""
        return self.bin_dir / f"php{line}"

    def system_binary(self, line: str) -> Path:
        """Version-scoped symlink in the system bin directory."""
        return self.system_bin_dir / f"php{line}"

    @property
    def global_binary(self) -> Path:
        """Generic `php` symlink for the CLI-bound version."""
        return self.system_bin_dir / "php"

    def fpm_socket(self, line: str) -> Path:
        return self.run_dir / f"php{line}-fpm.sock"

    def fpm_pid(self, line: str) -> Path:
        return self.run_dir / f"php{line}-fpm.pid"

    def fpm_log(self, line: str) -> Path:
        return self.log_dir / f"php{line}-fpm.log"

    # User config files

    @property
    def state_file(self) -> Path:
        return self.config_dir / "state.json"

    @property
    def cache_file(self) -> Path:
        return self.config_dir / "version_cache.json"

    @property
    def build_log_dir(self) -> Path:
        return self.config_dir / "logs"

    def managed_directories(self) -> List[Path]:
        return [
            self.base_dir,
            self.bin_dir,
            self.php_dir,
            self.etc_dir,
            self.run_dir,
            self.log_dir,
        ]


def verify_directory_writable(path: Path) -> bool:
    """
    Verify that a directory exists and is writable.

    Returns:
        True if directory exists and is writable, False otherwise
    """
    if not path.exists() or not path.is_dir():
        return False

    try:
        test_file = path / ".write_test"
        test_file.touch()
        test_file.unlink()
        return True
    except OSError:
        return False


def ensure_directories(layout: Layout) -> None:
    """
    Create the managed directory tree if it doesn't exist.

    Raises:
        DirectoryError: If a directory cannot be created or is not writable
    """
    for directory in layout.managed_directories() + [layout.build_log_dir]:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryError(f"Failed to create directory {directory}: {e}")

    if not verify_directory_writable(layout.base_dir):
        raise DirectoryError(
            f"Directory {layout.base_dir} is not writable. "
            "Please check directory permissions."
        )


def check_install_permissions(layout: Layout) -> None:
    """
    Verify the managed tree and the system bin directory are writable.

    Raises:
        InsufficientPermissionsError: If either location is not writable
    """
    check_write_access(layout.base_dir, layout.system_bin_dir)
