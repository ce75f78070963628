"""
Extensions command implementation.

Lists, adds or removes the extensions compiled into an installed version.
Changes rebuild the version unless --no-rebuild stages them instead.
"""

import logging

from phpforge.catalog.extensions import EXTENSIONS
from phpforge.cli.utils import create_manager, print_error, report_error, split_names
from phpforge.core.exceptions import PhpForgeError

logger = logging.getLogger(__name__)


def _list(manager, args) -> int:
    record = manager.get(args.version)
    print(f"PHP {record.exact_version} extensions:")
    for name in record.extensions:
        marker = " (pending removal)" if name in record.pending_remove else ""
        print(f"  {name}{marker}")
    for name in record.pending_add:
        print(f"  {name} (pending addition)")

    if args.all:
        available = [name for name in EXTENSIONS if name not in record.extensions]
        print("Available:")
        for name in available:
            note = " (installed separately)" if EXTENSIONS[name].alternate_install else ""
            print(f"  {name}{note}")

    if record.needs_rebuild:
        print(f"Apply staged changes with: phpforge rebuild {record.major_minor}")
    return 0


def run(args) -> int:
    """
    Run the extensions command.

    Args:
        args: Parsed command-line arguments with:
            - version: Installed PHP line
            - action: list, add or remove
            - names: Extension names for add/remove
            - no_rebuild: Stage instead of rebuilding

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    names = split_names(args.names)
    if args.action != "list" and not names:
        print_error(f"'{args.action}' needs at least one extension name")
        return 1

    try:
        manager = create_manager(args)
        if args.action == "list":
            return _list(manager, args)

        rebuild = not args.no_rebuild
        if args.action == "add":
            result = manager.add_extensions(args.version, names, rebuild=rebuild)
        else:
            result = manager.remove_extensions(args.version, names, rebuild=rebuild)
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    print(result.message)
    if not rebuild and result.record.needs_rebuild:
        print(f"Apply with: phpforge rebuild {result.record.major_minor}")
    return 0
