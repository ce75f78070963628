"""
Available command implementation.

Shows the latest upstream release of every supported line.
"""

from phpforge.cli.utils import create_manager, report_error
from phpforge.core.exceptions import PhpForgeError
from phpforge.versions.registry import compare_versions


def run(args) -> int:
    """Print the latest release per supported line."""
    try:
        manager = create_manager(args)
        releases = manager.available(force_refresh=args.refresh)
        installed = {r.major_minor: r for r in manager.list_installed()}
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    for info in releases:
        record = installed.get(info.major_minor)
        if record is None:
            status = ""
        elif compare_versions(info.exact_version, record.exact_version) > 0:
            status = f" (installed {record.exact_version}, update available)"
        else:
            status = " (installed)"
        print(f"PHP {info.major_minor}: {info.exact_version}{status}")
    return 0
