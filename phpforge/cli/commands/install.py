"""
Install command implementation.

Builds the latest release of a PHP line from source.
"""

import logging

from phpforge.cli.utils import create_manager, report_error, split_names
from phpforge.core.exceptions import PhpForgeError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments with:
            - version: PHP line to install
            - extensions: Comma-separated extension list (optional)
            - no_cache: Bypass the version cache

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    extensions = split_names([args.extensions]) if args.extensions else None

    try:
        manager = create_manager(args)
        result = manager.install(
            args.version, extensions=extensions, force_refresh=args.no_cache
        )
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    record = result.record
    print(result.message)
    print(f"Extensions: {', '.join(record.extensions) or '(none)'}")
    print(f"Binary: php{record.major_minor}")
    if manager.store.get_cli() is None:
        print(f"Run 'phpforge cli {record.major_minor}' to make it the default php")
    return 0
