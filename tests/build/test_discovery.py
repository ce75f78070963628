"""
Tests for post-install binary discovery.
"""

import logging
from unittest.mock import patch

import pytest

from phpforge.build.discovery import (
    candidate_sources,
    discover_binary,
    iter_candidates,
    verify_binary,
)
from phpforge.core.exceptions import BinaryVerificationError, CommandError


class TestVerifyBinary:
    """Tests for verify_binary."""

    def test_matching_version(self, tmp_path, make_php_binary):
        """A binary reporting the expected version verifies."""
        binary = make_php_binary(tmp_path / "php", "8.3.12")
        assert verify_binary(binary, "8.3.12") is True

    def test_wrong_version(self, tmp_path, make_php_binary, caplog):
        """A binary of another release is rejected."""
        binary = make_php_binary(tmp_path / "php", "8.3.11")
        with caplog.at_level(logging.DEBUG, logger="phpforge.build.discovery"):
            assert verify_binary(binary, "8.3.12") is False
        assert "reports 8.3.11, expected PHP 8.3.12" in caplog.text

    def test_failing_binary(self, tmp_path, make_php_binary):
        """A binary exiting non-zero is rejected."""
        binary = make_php_binary(tmp_path / "php", "8.3.12", exit_code=1)
        assert verify_binary(binary, "8.3.12") is False

    def test_not_executable(self, tmp_path):
        """Plain files are rejected without running them."""
        plain = tmp_path / "php"
        plain.write_text("")
        plain.chmod(0o644)
        with patch("phpforge.build.discovery.run_command") as mock_run:
            assert verify_binary(plain, "8.3.12") is False
        mock_run.assert_not_called()

    def test_unrunnable(self, tmp_path, make_php_binary):
        """A binary that cannot start is rejected."""
        binary = make_php_binary(tmp_path / "php", "8.3.12")
        with patch(
            "phpforge.build.discovery.run_command",
            side_effect=CommandError([str(binary), "-v"], 126),
        ):
            assert verify_binary(binary, "8.3.12") is False

    def test_permission_denied_is_skipped(self, tmp_path, make_php_binary):
        """A candidate the invoking user cannot reach is rejected, not raised."""
        binary = make_php_binary(tmp_path / "php", "8.3.12")
        with patch(
            "phpforge.core.process.subprocess.run",
            side_effect=PermissionError(13, "Permission denied"),
        ):
            assert verify_binary(binary, "8.3.12") is False


class TestCandidateSources:
    """Tests for candidate ordering."""

    def test_order(self, tmp_path):
        """Fixed prefix locations come first, then system links, then search."""
        labels = [
            label for label, _ in candidate_sources(tmp_path, tmp_path / "bin", "8.3")
        ]
        assert labels == [
            "prefix bin/php",
            "prefix bin/php-cli",
            "prefix sbin/php-fpm",
            "system php8.3",
            "system php",
            "search under prefix",
        ]

    def test_staged_excludes_system(self, tmp_path):
        """Staged installs never look at the published links."""
        labels = [
            label
            for label, _ in candidate_sources(
                tmp_path, tmp_path / "bin", "8.3", include_system=False
            )
        ]
        assert not any(label.startswith("system") for label in labels)

    def test_iter_candidates_dedupes(self, tmp_path):
        """A path offered twice is only tried once."""
        path = tmp_path / "php"
        sources = [("a", lambda: [path]), ("b", lambda: [path, tmp_path / "other"])]
        assert [p for _, p in iter_candidates(sources)] == [path, tmp_path / "other"]


class TestDiscoverBinary:
    """Tests for discover_binary."""

    def test_prefix_bin(self, tmp_path, make_php_binary):
        """The standard location is found first."""
        prefix = tmp_path / "php8.3"
        binary = make_php_binary(prefix / "bin" / "php", "8.3.12")

        found = discover_binary(prefix, "8.3.12", tmp_path / "sysbin", "8.3")
        assert found == binary.resolve()

    def test_skips_unverifiable_candidate(self, tmp_path, make_php_binary):
        """A broken bin/php does not stop the search."""
        prefix = tmp_path / "php8.3"
        make_php_binary(prefix / "bin" / "php", "8.3.12", exit_code=1)
        cli = make_php_binary(prefix / "bin" / "php-cli", "8.3.12")

        found = discover_binary(prefix, "8.3.12", tmp_path / "sysbin", "8.3")
        assert found == cli.resolve()

    def test_recursive_search(self, tmp_path, make_php_binary):
        """A binary in a nested directory is found by the search."""
        prefix = tmp_path / "php8.3"
        nested = make_php_binary(prefix / "lib" / "php" / "bin" / "php", "8.3.12")

        found = discover_binary(
            prefix, "8.3.12", tmp_path / "sysbin", "8.3", include_system=False
        )
        assert found == nested.resolve()

    def test_resolves_links(self, tmp_path, make_php_binary):
        """The real file is returned, not the link that led to it."""
        real = make_php_binary(tmp_path / "real" / "php", "8.3.12")
        prefix = tmp_path / "php8.3"
        (prefix / "bin").mkdir(parents=True)
        (prefix / "bin" / "php").symlink_to(real)

        assert discover_binary(prefix, "8.3.12", tmp_path / "sysbin", "8.3") == real.resolve()

    def test_nothing_verifies(self, tmp_path, make_php_binary):
        """BinaryVerificationError lists what was tried."""
        prefix = tmp_path / "php8.3"
        make_php_binary(prefix / "bin" / "php", "8.2.24")

        with pytest.raises(BinaryVerificationError) as exc_info:
            discover_binary(prefix, "8.3.12", tmp_path / "sysbin", "8.3")

        assert exc_info.value.stage == "verify"
        assert "bin/php" in str(exc_info.value)

    def test_custom_sources(self, tmp_path, make_php_binary):
        """Callers can supply their own candidate sources."""
        binary = make_php_binary(tmp_path / "custom" / "php", "8.4.1")
        found = discover_binary(
            tmp_path, "8.4.1", tmp_path, "8.4", sources=[("custom", lambda: [binary])]
        )
        assert found == binary.resolve()
