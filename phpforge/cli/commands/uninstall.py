"""
Uninstall command implementation.
"""

import logging

from phpforge.cli.utils import confirm, create_manager, report_error
from phpforge.core.exceptions import PhpForgeError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the uninstall command.

    Asks for confirmation unless --yes is given, with a stronger warning
    when the version is the CLI-bound one.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        manager = create_manager(args)
        record = manager.get(args.version)

        if not args.yes:
            prompt = f"Remove PHP {record.exact_version}?"
            if record.is_cli:
                prompt = (
                    f"PHP {record.exact_version} is the default php; "
                    "removing it leaves no 'php' command. Continue?"
                )
            if not confirm(prompt):
                print("Uninstall cancelled")
                return 0

        result = manager.uninstall(record.major_minor)
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    print(result.message)
    return 0
