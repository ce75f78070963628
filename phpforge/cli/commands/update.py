"""
Update command implementation.

Rebuilds outdated versions at their latest upstream patch release.
"""

import logging

from phpforge.cli.utils import confirm, create_manager, print_error, report_error
from phpforge.core.exceptions import PhpForgeError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the update command.

    Returns:
        Exit code (0 if every selected version is current or was updated)
    """
    try:
        manager = create_manager(args)
        updates = manager.check_updates(args.version)
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    if not updates:
        print("All installed PHP versions are up to date")
        return 0

    print("Updates available:")
    for line, (current, latest) in updates.items():
        print(f"  PHP {line}: {current} -> {latest}")

    if not args.yes and not confirm("Rebuild these versions now?"):
        print("Update cancelled")
        return 0

    try:
        results = manager.update(args.version, force_refresh=False)
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    failed = 0
    for line, result in results.items():
        if result.success:
            print(result.message)
        else:
            failed += 1
            print_error(f"PHP {line}: {result.error}", result.log_path)

    return 1 if failed else 0
