"""
CLI binding command implementation.
"""

from phpforge.cli.utils import create_manager, report_error
from phpforge.core.exceptions import PhpForgeError


def run(args) -> int:
    """Point the generic php command at an installed version."""
    try:
        result = create_manager(args).set_cli(args.version)
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    print(result.message)
    return 0
