"""
Rebuild command implementation.
"""

from phpforge.cli.utils import create_manager, report_error
from phpforge.core.exceptions import PhpForgeError


def run(args) -> int:
    """Rebuild a version, applying any staged extension changes."""
    try:
        manager = create_manager(args)
        record = manager.get(args.version)
        print(
            f"Rebuilding PHP {record.exact_version} with extensions: "
            f"{', '.join(record.effective_extensions()) or '(none)'}"
        )
        result = manager.rebuild(record.major_minor, force_refresh=args.no_cache)
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    print(result.message)
    return 0
