"""
Default configuration files for an installed PHP line.

Files are written only when absent so user edits survive rebuilds and
upgrades.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from phpforge.core.directory import Layout
from phpforge.core.filesystem import atomic_write, remove_path
from phpforge.core.process import RealUser

logger = logging.getLogger(__name__)

CONFIG_FILE_MODE = 0o644


@dataclass
class ConfigPaths:
    """Locations of the configuration of one line."""

    ini_path: Path
    scan_dir: Path
    fpm_config: Path
    fpm_pool: Path
    fpm_socket: Path


def config_paths(layout: Layout, major_minor: str) -> ConfigPaths:
    etc = layout.config_path(major_minor)
    return ConfigPaths(
        ini_path=etc / "php.ini",
        scan_dir=etc / "conf.d",
        fpm_config=etc / "php-fpm.conf",
        fpm_pool=etc / "php-fpm.d" / "www.conf",
        fpm_socket=layout.fpm_socket(major_minor),
    )


def render_php_ini(layout: Layout, major_minor: str) -> str:
    return f"""; Default php.ini for PHP {major_minor}, managed by phpforge.
; Additional .ini files are read from conf.d/.

[PHP]
engine = On
short_open_tag = Off
precision = 14
output_buffering = 4096
expose_php = Off
max_execution_time = 30
max_input_time = 60
memory_limit = 256M
error_reporting = E_ALL
display_errors = Off
display_startup_errors = Off
log_errors = On
post_max_size = 64M
upload_max_filesize = 64M
max_file_uploads = 20
default_charset = "UTF-8"
file_uploads = On
allow_url_fopen = On
allow_url_include = Off

[Date]
date.timezone = UTC

[Session]
session.save_handler = files
session.use_strict_mode = 1
session.cookie_httponly = 1

[opcache]
opcache.enable = 1
opcache.enable_cli = 0
opcache.memory_consumption = 128
"""


def render_fpm_config(layout: Layout, major_minor: str) -> str:
    return f"""; PHP-FPM {major_minor}, managed by phpforge.

[global]
pid = {layout.fpm_pid(major_minor)}
error_log = {layout.fpm_log(major_minor)}
daemonize = yes

include = {layout.config_path(major_minor) / "php-fpm.d"}/*.conf
"""


def render_fpm_pool(layout: Layout, major_minor: str, user: RealUser) -> str:
    return f"""; Default pool for PHP-FPM {major_minor}, managed by phpforge.

[www]
user = {user.name}
group = {user.group}

listen = {layout.fpm_socket(major_minor)}
listen.owner = {user.name}
listen.group = {user.group}
listen.mode = 0660

pm = dynamic
pm.max_children = 5
pm.start_servers = 2
pm.min_spare_servers = 1
pm.max_spare_servers = 3
"""


def write_default_configs(
    layout: Layout, major_minor: str, user: RealUser
) -> ConfigPaths:
    """
    Create php.ini, conf.d/ and the PHP-FPM configuration if missing.

    Returns:
        The configuration paths of the line
    """
    paths = config_paths(layout, major_minor)
    paths.scan_dir.mkdir(parents=True, exist_ok=True)

    files = [
        (paths.ini_path, render_php_ini(layout, major_minor)),
        (paths.fpm_config, render_fpm_config(layout, major_minor)),
        (paths.fpm_pool, render_fpm_pool(layout, major_minor, user)),
    ]
    created: List[str] = []
    for path, content in files:
        if path.exists():
            logger.debug(f"Keeping existing {path}")
            continue
        atomic_write(path, content)
        path.chmod(CONFIG_FILE_MODE)
        created.append(str(path))

    if created:
        logger.debug(f"Wrote default configuration: {', '.join(created)}")
    return paths


def extension_ini_path(layout: Layout, major_minor: str, name: str) -> Path:
    return config_paths(layout, major_minor).scan_dir / f"{name}.ini"


def write_extension_ini(layout: Layout, major_minor: str, name: str) -> Path:
    """Load a separately installed extension through conf.d/."""
    path = extension_ini_path(layout, major_minor, name)
    atomic_write(path, f"extension={name}.so\n")
    path.chmod(CONFIG_FILE_MODE)
    return path


def remove_extension_ini(layout: Layout, major_minor: str, name: str) -> bool:
    """Stop loading a separately installed extension."""
    return remove_path(extension_ini_path(layout, major_minor, name))
