"""
Tests for host detection.
"""

import subprocess
from unittest.mock import Mock, patch

import pytest

from phpforge.catalog.package_managers import PACKAGE_MANAGERS
from phpforge.core.exceptions import (
    DistributionDetectionError,
    PackageManagerNotFoundError,
)
from phpforge.core.platform import (
    UNKNOWN_DISTRIBUTION,
    _distribution_from_lsb_release,
    _distribution_from_markers,
    detect_distribution,
    detect_package_manager,
)


class TestDetectDistribution:
    """Tests for the distribution probe chain."""

    @patch("phpforge.core.platform.distro.os_release_attr", return_value="Ubuntu")
    def test_os_release_first(self, mock_attr):
        """The release metadata file wins and is lowercased."""
        name, error = detect_distribution()
        assert name == "ubuntu"
        assert error is None

    @patch("phpforge.core.platform._distribution_from_markers")
    @patch("phpforge.core.platform.subprocess.run")
    @patch("phpforge.core.platform.shutil.which", return_value="/usr/bin/lsb_release")
    @patch("phpforge.core.platform.distro.os_release_attr", return_value="")
    def test_falls_back_to_lsb_release(self, mock_attr, mock_which, mock_run, mock_markers):
        """lsb_release is asked when os-release has no ID."""
        mock_run.return_value = Mock(returncode=0, stdout="Fedora\n")

        name, error = detect_distribution()

        assert name == "fedora"
        assert error is None
        mock_markers.assert_not_called()

    @patch("phpforge.core.platform._distribution_from_markers", return_value="arch")
    @patch("phpforge.core.platform._distribution_from_lsb_release", return_value="")
    @patch("phpforge.core.platform.distro.os_release_attr", return_value="")
    def test_falls_back_to_markers(self, mock_attr, mock_lsb, mock_markers):
        """Marker files are the last probe."""
        assert detect_distribution() == ("arch", None)

    @patch("phpforge.core.platform._distribution_from_markers", return_value="")
    @patch("phpforge.core.platform._distribution_from_lsb_release", return_value="")
    @patch("phpforge.core.platform.distro.os_release_attr", side_effect=OSError("denied"))
    def test_unknown(self, mock_attr, mock_lsb, mock_markers):
        """Every probe failing yields 'unknown' plus an error."""
        name, error = detect_distribution()
        assert name == UNKNOWN_DISTRIBUTION
        assert isinstance(error, DistributionDetectionError)


class TestProbes:
    """Tests for individual probes."""

    @patch("phpforge.core.platform.subprocess.run")
    @patch("phpforge.core.platform.shutil.which", return_value="/usr/bin/lsb_release")
    def test_lsb_release_timeout(self, mock_which, mock_run):
        """A hung lsb_release is bounded and ignored."""
        mock_run.side_effect = subprocess.TimeoutExpired(["lsb_release"], 5)
        assert _distribution_from_lsb_release() == ""
        assert mock_run.call_args.kwargs["timeout"] == 5

    @patch("phpforge.core.platform.shutil.which", return_value=None)
    def test_lsb_release_missing(self, mock_which):
        """No lsb_release means no answer."""
        assert _distribution_from_lsb_release() == ""

    def test_markers(self, tmp_path):
        """The first existing marker file names the distribution."""
        marker = tmp_path / "alpine-release"
        marker.write_text("3.20\n")
        markers = {str(tmp_path / "debian_version"): "debian", str(marker): "alpine"}
        assert _distribution_from_markers(markers) == "alpine"


class TestDetectPackageManager:
    """Tests for package manager binding."""

    def test_first_available_in_order(self):
        """Profiles are probed in registry order."""
        available = {"dnf", "yum"}
        with patch(
            "phpforge.core.platform.shutil.which",
            side_effect=lambda cmd: f"/usr/bin/{cmd}" if cmd in available else None,
        ):
            assert detect_package_manager().name == "dnf"

    @patch("phpforge.core.platform.shutil.which", return_value=None)
    def test_none_found(self, mock_which):
        """No executable raises PackageManagerNotFoundError."""
        with pytest.raises(PackageManagerNotFoundError) as exc_info:
            detect_package_manager()
        assert "apt-get" in exc_info.value.probed
        assert len(exc_info.value.probed) == len(PACKAGE_MANAGERS)
