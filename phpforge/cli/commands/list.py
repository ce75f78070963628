"""
List command implementation.
"""

from phpforge.cli.utils import create_manager, report_error
from phpforge.core.exceptions import PhpForgeError


def run(args) -> int:
    """Print installed PHP versions."""
    try:
        records = create_manager(args).list_installed()
    except PhpForgeError as e:
        return report_error(e, args.verbose)

    if not records:
        print("No PHP versions installed")
        print("Install one with: phpforge install 8.3")
        return 0

    for record in records:
        flags = []
        if record.is_cli:
            flags.append("cli")
        if record.needs_rebuild:
            flags.append("needs rebuild")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"PHP {record.exact_version}{suffix}")
        print(f"  path: {record.install_path}")
        print(f"  extensions: {', '.join(record.extensions) or '(none)'}")
        if record.has_pending_changes:
            if record.pending_add:
                print(f"  pending add: {', '.join(record.pending_add)}")
            if record.pending_remove:
                print(f"  pending remove: {', '.join(record.pending_remove)}")
    return 0
