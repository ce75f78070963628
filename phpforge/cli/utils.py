"""
Shared utilities for CLI commands.

Every command builds its PhpManager through `create_manager()` and reports
failures through `report_error()`, so error output looks the same everywhere.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from phpforge.config.parser import Settings, load_settings
from phpforge.core.exceptions import PhpForgeError
from phpforge.manager import PhpManager

logger = logging.getLogger(__name__)


# ============================================================================
# Setup
# ============================================================================


def load_cli_settings(args) -> Settings:
    """Load settings honoring the global --config option."""
    return load_settings(getattr(args, "config", None))


def create_manager(args) -> PhpManager:
    """
    Build the service layer for a command.

    Raises:
        ConfigError: If the configuration is invalid
    """
    return PhpManager(load_cli_settings(args))


def split_names(values: Iterable[str]) -> List[str]:
    """
    Flatten comma- and space-separated extension arguments.

    Example:
        >>> split_names(["curl,intl", "gd"])
        ['curl', 'intl', 'gd']
    """
    names: List[str] = []
    for value in values:
        names.extend(part.strip() for part in value.split(",") if part.strip())
    return names


# ============================================================================
# Output
# ============================================================================


def print_error(message: str, log_path: Optional[Path] = None):
    """
    Print an error to stderr, with a pointer to the build log if one was kept.
    """
    print(f"Error: {message}", file=sys.stderr)
    if log_path:
        print(f"Build log: {log_path}", file=sys.stderr)
        print(f"Inspect it with: tail -n 50 {log_path}", file=sys.stderr)


def report_error(error: PhpForgeError, verbose: bool = False) -> int:
    """
    Report a failed operation and return the exit code.

    Returns:
        1
    """
    print_error(str(error), getattr(error, "log_path", None))
    if verbose:
        logger.debug("Traceback:", exc_info=error)
    return 1


def confirm(prompt: str) -> bool:
    """Ask a yes/no question; anything but yes declines."""
    try:
        response = input(f"{prompt} [y/N] ").strip().lower()
    except EOFError:
        return False
    return response in ("y", "yes")
