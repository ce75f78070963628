"""
Doctor command for diagnosing host and installation issues.
"""

import logging

from phpforge.cli.utils import create_manager, report_error
from phpforge.core.exceptions import PhpForgeError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the doctor command.

    Returns:
        Exit code (0 if healthy, 1 if any check failed)
    """
    try:
        report = create_manager(args).doctor()
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    print("Running phpforge diagnostics...\n")
    for check in report.checks:
        status = "ok" if check.passed else "FAIL"
        print(f"[{status}] {check.name}: {check.message}")
        if check.fix_command:
            print(f"       fix: {check.fix_command}")

    failed = sum(1 for check in report.checks if not check.passed)
    if failed:
        print(f"\nFound {failed} issue(s) that need attention")
        return 1

    print("\nEverything looks healthy")
    return 0
