"""YAML configuration parser for phpforge.

Settings are read from `config.yaml` in the user's phpforge config directory
(or the file named by --config / PHPFORGE_CONFIG). Every key is optional; a
missing file yields the built-in defaults.
"""

import logging
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from phpforge.catalog.extensions import DEFAULT_EXTENSIONS, validate_extensions
from phpforge.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_SUPPORTED_VERSIONS = ["8.1", "8.2", "8.3", "8.4"]
DEFAULT_RELEASE_INDEX_URL = "https://www.php.net/releases/index.php?json&version={line}"
DEFAULT_DISTRIBUTION_URL = "https://www.php.net/distributions/{filename}"

_LINE_PATTERN = re.compile(r"^\d+\.\d+$")


@dataclass
class Settings:
    """User-tunable settings."""

    base_dir: Path = Path("/opt/phpforge")
    system_bin_dir: Path = Path("/usr/local/bin")
    build_dir: Optional[Path] = None  # None means the system temp directory
    supported_versions: List[str] = field(
        default_factory=lambda: list(DEFAULT_SUPPORTED_VERSIONS)
    )
    default_extensions: List[str] = field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS)
    )
    cache_ttl: int = 3600  # seconds
    release_index_url: str = DEFAULT_RELEASE_INDEX_URL
    distribution_url: str = DEFAULT_DISTRIBUTION_URL
    http_timeout: int = 10
    jobs: Optional[int] = None  # None autodetects the processor count
    config_file: Optional[Path] = None


_PATH_KEYS = ("base_dir", "system_bin_dir", "build_dir")
_INT_KEYS = ("cache_ttl", "http_timeout", "jobs")
_STR_KEYS = ("release_index_url", "distribution_url")
_LIST_KEYS = ("supported_versions", "default_extensions")


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        config_path: Explicit config file. When None, PHPFORGE_CONFIG or the
            default location in the user config directory is used.

    Returns:
        Parsed and validated settings

    Raises:
        ConfigError: If an explicitly given file is missing or any value is invalid
    """
    explicit = config_path is not None or "PHPFORGE_CONFIG" in os.environ
    if config_path is None:
        env_path = os.environ.get("PHPFORGE_CONFIG")
        if env_path:
            config_path = Path(env_path)
        else:
            from phpforge.core.directory import get_user_config_dir

            config_path = get_user_config_dir() / "config.yaml"

    config_path = Path(config_path).expanduser()
    data: Dict[str, Any] = {}

    if config_path.exists():
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read configuration {config_path}: {e}")
        logger.debug(f"Loaded configuration from {config_path}")
    elif explicit:
        raise ConfigError(f"Configuration file not found: {config_path}")

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping: {config_path}")

    settings = parse_settings(data)
    settings.config_file = config_path if config_path.exists() else None

    base_override = os.environ.get("PHPFORGE_BASE_DIR")
    if base_override:
        settings.base_dir = Path(base_override)

    return settings


def parse_settings(data: Dict[str, Any]) -> Settings:
    """Parse and validate a configuration mapping."""
    known = {f.name for f in fields(Settings)} - {"config_file"}
    for key in data:
        if key not in known:
            logger.warning(f"Ignoring unknown configuration key: {key}")

    values: Dict[str, Any] = {}

    for key in _PATH_KEYS:
        if data.get(key) is not None:
            if not isinstance(data[key], str):
                raise ConfigError(f"{key} must be a path string")
            values[key] = Path(data[key]).expanduser()

    for key in _INT_KEYS:
        if data.get(key) is not None:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{key} must be a positive integer")
            values[key] = value

    for key in _STR_KEYS:
        if data.get(key) is not None:
            if not isinstance(data[key], str):
                raise ConfigError(f"{key} must be a string")
            values[key] = data[key]

    for key in _LIST_KEYS:
        if data.get(key) is not None:
            value = data[key]
            if not isinstance(value, list) or not all(
                isinstance(v, (str, int, float)) for v in value
            ):
                raise ConfigError(f"{key} must be a list of strings")
            values[key] = [str(v) for v in value]

    for line in values.get("supported_versions", []):
        if not _LINE_PATTERN.match(line):
            raise ConfigError(
                f"Invalid supported version '{line}' (expected major.minor, e.g. 8.3)"
            )

    if "default_extensions" in values:
        valid, invalid = validate_extensions(values["default_extensions"])
        if invalid:
            raise ConfigError(f"Unknown default extensions: {', '.join(invalid)}")
        values["default_extensions"] = valid

    if "{line}" not in values.get("release_index_url", "{line}"):
        raise ConfigError("release_index_url must contain a {line} placeholder")
    if "{filename}" not in values.get("distribution_url", "{filename}"):
        raise ConfigError("distribution_url must contain a {filename} placeholder")

    return Settings(**values)
