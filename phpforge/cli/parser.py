"""
phpforge CLI argument parser.

This module implements the command-line interface for phpforge using argparse.
"""

import argparse
import importlib
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

try:
    __version__ = version("phpforge")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)


class CLI:
    """phpforge command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="phpforge",
            description="phpforge - build and manage PHP versions from source",
            epilog='Use "phpforge COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"phpforge {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ~/.config/phpforge/config.yaml)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_uninstall_command(subparsers)
        self._add_list_command(subparsers)
        self._add_available_command(subparsers)
        self._add_cli_command(subparsers)
        self._add_extensions_command(subparsers)
        self._add_rebuild_command(subparsers)
        self._add_update_command(subparsers)
        self._add_doctor_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Build and install a PHP version",
            description="Download, build and install the latest release of a PHP line",
        )
        parser.add_argument("version", metavar="VERSION", help="PHP line, e.g. 8.3")
        parser.add_argument(
            "--extensions",
            metavar="LIST",
            help="Comma-separated extensions (default: configured defaults)",
        )
        parser.add_argument(
            "--no-cache",
            action="store_true",
            help="Query upstream even if the version cache is fresh",
        )

    def _add_uninstall_command(self, subparsers):
        """Add 'uninstall' subcommand."""
        parser = subparsers.add_parser(
            "uninstall",
            help="Remove an installed PHP version",
            description="Remove a PHP version with its links and configuration",
        )
        parser.add_argument("version", metavar="VERSION", help="PHP line, e.g. 8.3")
        parser.add_argument(
            "--yes", "-y", action="store_true", help="Do not ask for confirmation"
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        subparsers.add_parser(
            "list",
            help="List installed PHP versions",
            description="List installed PHP versions and their extensions",
        )

    def _add_available_command(self, subparsers):
        """Add 'available' subcommand."""
        parser = subparsers.add_parser(
            "available",
            help="Show the latest upstream releases",
            description="Show the latest release of every supported PHP line",
        )
        parser.add_argument(
            "--refresh",
            action="store_true",
            help="Query upstream even if the version cache is fresh",
        )

    def _add_cli_command(self, subparsers):
        """Add 'cli' subcommand."""
        parser = subparsers.add_parser(
            "cli",
            help="Set the default php version",
            description="Point the generic 'php' command at an installed version",
        )
        parser.add_argument("version", metavar="VERSION", help="PHP line, e.g. 8.3")

    def _add_extensions_command(self, subparsers):
        """Add 'extensions' subcommand."""
        parser = subparsers.add_parser(
            "extensions",
            help="List, add or remove extensions",
            description="Manage the extensions compiled into an installed PHP version",
        )
        parser.add_argument("version", metavar="VERSION", help="PHP line, e.g. 8.3")
        parser.add_argument(
            "action",
            choices=["list", "add", "remove"],
            nargs="?",
            default="list",
            help="Action to perform [default: list]",
        )
        parser.add_argument(
            "names", nargs="*", metavar="NAME", help="Extension names (add/remove)"
        )
        parser.add_argument(
            "--no-rebuild",
            action="store_true",
            help="Only stage the change; apply it with 'phpforge rebuild'",
        )
        parser.add_argument(
            "--all",
            action="store_true",
            help="With 'list', show every available extension",
        )

    def _add_rebuild_command(self, subparsers):
        """Add 'rebuild' subcommand."""
        parser = subparsers.add_parser(
            "rebuild",
            help="Rebuild an installed PHP version",
            description="Rebuild a PHP version, applying staged extension changes",
        )
        parser.add_argument("version", metavar="VERSION", help="PHP line, e.g. 8.3")
        parser.add_argument(
            "--no-cache",
            action="store_true",
            help="Query upstream even if the version cache is fresh",
        )

    def _add_update_command(self, subparsers):
        """Add 'update' subcommand."""
        parser = subparsers.add_parser(
            "update",
            help="Upgrade installed versions to the latest release",
            description="Rebuild outdated PHP versions at their latest patch release",
        )
        parser.add_argument(
            "version", metavar="VERSION", nargs="?", help="Only update this line"
        )
        parser.add_argument(
            "--yes", "-y", action="store_true", help="Do not ask for confirmation"
        )

    def _add_doctor_command(self, subparsers):
        """Add 'doctor' subcommand."""
        subparsers.add_parser(
            "doctor",
            help="Diagnose the host and installed versions",
            description="Check dependencies, links and conflicting PHP installations",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )
        # Build logs lower logger levels; console handlers keep this one
        for handler in logging.getLogger().handlers:
            handler.setLevel(level)

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "install": "phpforge.cli.commands.install",
            "uninstall": "phpforge.cli.commands.uninstall",
            "list": "phpforge.cli.commands.list",
            "available": "phpforge.cli.commands.available",
            "cli": "phpforge.cli.commands.cli",
            "extensions": "phpforge.cli.commands.extensions",
            "rebuild": "phpforge.cli.commands.rebuild",
            "update": "phpforge.cli.commands.update",
            "doctor": "phpforge.cli.commands.doctor",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
