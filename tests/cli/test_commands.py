"""
Tests for CLI command handlers.

The service layer is replaced with a mock; these tests cover argument
handling, output and exit codes.
"""

import argparse
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from phpforge.cli import utils
from phpforge.cli.commands import (
    available,
    doctor,
    extensions,
    install,
    rebuild,
    uninstall,
    update,
)
from phpforge.cli.commands import cli as cli_command
from phpforge.cli.commands import list as list_command
from phpforge.core.exceptions import BuildError, NotInstalledError
from phpforge.core.state import InstalledVersion
from phpforge.manager import CheckResult, DoctorReport, OperationResult
from phpforge.versions.registry import VersionInfo


def _args(**kwargs):
    defaults = {"verbose": False, "quiet": False, "config": None}
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


def _record(line="8.3", exact="8.3.12", **kwargs):
    return InstalledVersion(line, exact, f"/opt/phpforge/php/php{line}", **kwargs)


@pytest.fixture
def manager():
    manager = Mock()
    with patch("phpforge.cli.utils.PhpManager", return_value=manager), patch(
        "phpforge.cli.utils.load_settings"
    ):
        yield manager


class TestUtils:
    """Tests for CLI helpers."""

    def test_split_names(self):
        """Comma and argument separated names are flattened."""
        assert utils.split_names(["curl,intl", " gd ", ","]) == ["curl", "intl", "gd"]

    def test_print_error_with_log(self, capsys):
        """Errors from builds point at the retained log."""
        utils.print_error("build failed", Path("/tmp/build.log"))
        err = capsys.readouterr().err
        assert "Error: build failed" in err
        assert "tail -n 50 /tmp/build.log" in err

    def test_report_error(self, capsys):
        """report_error prints the message and returns 1."""
        assert utils.report_error(NotInstalledError("8.1")) == 1
        assert "PHP 8.1 is not installed" in capsys.readouterr().err

    @pytest.mark.parametrize(
        "answer,expected", [("y", True), ("YES", True), ("", False), ("n", False)]
    )
    def test_confirm(self, answer, expected):
        """Only an explicit yes confirms."""
        with patch("builtins.input", return_value=answer):
            assert utils.confirm("Continue?") is expected

    def test_confirm_eof(self):
        """A closed stdin declines."""
        with patch("builtins.input", side_effect=EOFError):
            assert utils.confirm("Continue?") is False


class TestInstallCommand:
    """Tests for the install command."""

    def test_success(self, manager, capsys):
        """The result and a CLI hint are printed."""
        manager.install.return_value = OperationResult(
            success=True,
            record=_record(extensions=["curl", "intl"]),
            message="PHP 8.3.12 installed to /opt/phpforge/php/php8.3",
        )
        manager.store.get_cli.return_value = None

        code = install.run(_args(version="8.3", extensions="curl,intl", no_cache=False))

        assert code == 0
        manager.install.assert_called_once_with(
            "8.3", extensions=["curl", "intl"], force_refresh=False
        )
        out = capsys.readouterr().out
        assert "installed" in out
        assert "phpforge cli 8.3" in out

    def test_default_extensions(self, manager):
        """No --extensions passes None so defaults apply."""
        manager.install.return_value = OperationResult(True, record=_record())
        install.run(_args(version="8.3", extensions=None, no_cache=True))
        manager.install.assert_called_once_with("8.3", extensions=None, force_refresh=True)

    def test_build_failure(self, manager, capsys):
        """A failed build exits 1 and names the log."""
        manager.install.side_effect = BuildError(
            "PHP 8.3.12 build failed during compile",
            log_path=Path("/home/alice/.config/phpforge/logs/build.log"),
            stage="compile",
        )

        assert install.run(_args(version="8.3", extensions=None, no_cache=False)) == 1
        err = capsys.readouterr().err
        assert "failed during compile" in err
        assert "build.log" in err


class TestUninstallCommand:
    """Tests for the uninstall command."""

    def test_confirmed(self, manager):
        """A confirmed uninstall removes the version."""
        manager.get.return_value = _record()
        manager.uninstall.return_value = OperationResult(True, message="removed")

        with patch("phpforge.cli.commands.uninstall.confirm", return_value=True):
            assert uninstall.run(_args(version="8.3", yes=False)) == 0
        manager.uninstall.assert_called_once_with("8.3")

    def test_declined(self, manager, capsys):
        """Declining leaves everything in place."""
        manager.get.return_value = _record(is_cli=True)

        with patch(
            "phpforge.cli.commands.uninstall.confirm", return_value=False
        ) as mock_confirm:
            assert uninstall.run(_args(version="8.3", yes=False)) == 0

        assert "default php" in mock_confirm.call_args[0][0]
        manager.uninstall.assert_not_called()
        assert "cancelled" in capsys.readouterr().out

    def test_yes_skips_prompt(self, manager):
        """--yes does not prompt."""
        manager.get.return_value = _record()
        manager.uninstall.return_value = OperationResult(True, message="removed")

        with patch("phpforge.cli.commands.uninstall.confirm") as mock_confirm:
            uninstall.run(_args(version="8.3", yes=True))
        mock_confirm.assert_not_called()

    def test_not_installed(self, manager):
        """Unknown versions exit 1."""
        manager.get.side_effect = NotInstalledError("8.1")
        assert uninstall.run(_args(version="8.1", yes=True)) == 1


class TestListCommands:
    """Tests for list and available."""

    def test_list_empty(self, manager, capsys):
        """An empty store suggests installing."""
        manager.list_installed.return_value = []
        assert list_command.run(_args()) == 0
        assert "No PHP versions installed" in capsys.readouterr().out

    def test_list_flags(self, manager, capsys):
        """CLI binding and pending changes are shown."""
        manager.list_installed.return_value = [
            _record(extensions=["curl"], is_cli=True, pending_add=["intl"], needs_rebuild=True)
        ]
        list_command.run(_args())
        out = capsys.readouterr().out
        assert "PHP 8.3.12 [cli, needs rebuild]" in out
        assert "pending add: intl" in out

    def test_available(self, manager, capsys):
        """Installed lines show whether an update exists."""
        manager.available.return_value = [
            VersionInfo("8.2", "8.2.24", "u1"),
            VersionInfo("8.3", "8.3.14", "u2"),
        ]
        manager.list_installed.return_value = [_record()]

        assert available.run(_args(refresh=True)) == 0

        manager.available.assert_called_once_with(force_refresh=True)
        out = capsys.readouterr().out
        assert "PHP 8.2: 8.2.24\n" in out
        assert "installed 8.3.12, update available" in out


class TestCliCommand:
    """Tests for the cli command."""

    def test_set_cli(self, manager, capsys):
        """The manager message is printed."""
        manager.set_cli.return_value = OperationResult(
            True, message="PHP 8.3.12 is now the CLI version"
        )
        assert cli_command.run(_args(version="8.3")) == 0
        assert "CLI version" in capsys.readouterr().out


class TestExtensionsCommand:
    """Tests for the extensions command."""

    def test_list_all(self, manager, capsys):
        """--all shows catalog extensions not yet enabled."""
        manager.get.return_value = _record(extensions=["curl"])

        extensions.run(
            _args(version="8.3", action="list", names=[], no_rebuild=False, all=True)
        )

        out = capsys.readouterr().out
        assert "  curl\n" in out
        assert "redis (installed separately)" in out

    def test_add(self, manager):
        """Names are split and passed with the rebuild flag."""
        manager.add_extensions.return_value = OperationResult(
            True, record=_record(extensions=["curl", "intl", "gd"]), message="rebuilt"
        )

        code = extensions.run(
            _args(version="8.3", action="add", names=["intl,gd"], no_rebuild=False, all=False)
        )

        assert code == 0
        manager.add_extensions.assert_called_once_with("8.3", ["intl", "gd"], rebuild=True)

    def test_remove_staged(self, manager, capsys):
        """--no-rebuild stages and explains how to apply."""
        manager.remove_extensions.return_value = OperationResult(
            True,
            record=_record(extensions=["curl"], pending_remove=["curl"], needs_rebuild=True),
            message="Staged for removal: curl",
        )

        extensions.run(
            _args(version="8.3", action="remove", names=["curl"], no_rebuild=True, all=False)
        )

        manager.remove_extensions.assert_called_once_with("8.3", ["curl"], rebuild=False)
        assert "phpforge rebuild 8.3" in capsys.readouterr().out

    def test_add_without_names(self, manager, capsys):
        """add needs at least one name."""
        code = extensions.run(
            _args(version="8.3", action="add", names=[], no_rebuild=False, all=False)
        )
        assert code == 1
        assert "needs at least one extension" in capsys.readouterr().err


class TestUpdateCommand:
    """Tests for the update command."""

    def test_up_to_date(self, manager, capsys):
        """No updates means nothing to confirm."""
        manager.check_updates.return_value = {}
        assert update.run(_args(version=None, yes=False)) == 0
        assert "up to date" in capsys.readouterr().out
        manager.update.assert_not_called()

    def test_partial_failure(self, manager, capsys):
        """A failed line exits 1 and the others are still reported."""
        manager.check_updates.return_value = {
            "8.2": ("8.2.23", "8.2.24"),
            "8.3": ("8.3.12", "8.3.14"),
        }
        manager.update.return_value = {
            "8.2": OperationResult(True, message="PHP 8.2 updated from 8.2.23 to 8.2.24"),
            "8.3": OperationResult(
                False, error="build failed", log_path=Path("/tmp/php8.3.log")
            ),
        }

        assert update.run(_args(version=None, yes=True)) == 1

        captured = capsys.readouterr()
        assert "PHP 8.2 updated" in captured.out
        assert "PHP 8.3: build failed" in captured.err
        manager.update.assert_called_once_with(None, force_refresh=False)

    def test_declined(self, manager):
        """Declining the prompt builds nothing."""
        manager.check_updates.return_value = {"8.3": ("8.3.12", "8.3.14")}
        with patch("phpforge.cli.commands.update.confirm", return_value=False):
            assert update.run(_args(version=None, yes=False)) == 0
        manager.update.assert_not_called()


class TestDoctorCommand:
    """Tests for the doctor command."""

    def test_healthy(self, manager, capsys):
        """A healthy report exits 0."""
        manager.doctor.return_value = DoctorReport(
            [CheckResult("distribution", True, "debian")]
        )
        assert doctor.run(_args()) == 0
        assert "[ok] distribution: debian" in capsys.readouterr().out

    def test_failures(self, manager, capsys):
        """Failed checks print their fix and exit 1."""
        manager.doctor.return_value = DoctorReport(
            [
                CheckResult("distribution", True, "debian"),
                CheckResult(
                    "PHP 8.3", False, "install directory missing", "phpforge rebuild 8.3"
                ),
            ]
        )
        assert doctor.run(_args()) == 1
        out = capsys.readouterr().out
        assert "[FAIL] PHP 8.3" in out
        assert "fix: phpforge rebuild 8.3" in out


class TestRebuildCommand:
    """Tests for the rebuild command."""

    def test_rebuild_shows_effective_extensions(self, manager, capsys):
        """Staged changes are listed before the build starts."""
        manager.get.return_value = _record(
            extensions=["curl", "gd"], pending_add=["intl"], pending_remove=["gd"]
        )
        manager.rebuild.return_value = OperationResult(True, message="PHP 8.3.12 rebuilt")

        assert rebuild.run(_args(version="8.3", no_cache=False)) == 0

        manager.rebuild.assert_called_once_with("8.3", force_refresh=False)
        out = capsys.readouterr().out
        assert "with extensions: curl, intl" in out
        assert "rebuilt" in out
