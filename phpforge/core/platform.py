"""
Host detection for phpforge.

This module identifies the Linux distribution and the system package manager
used to install build dependencies.

Distribution detection probes, in order:
1. The release metadata file (/etc/os-release, read through `distro`)
2. The `lsb_release -si` command
3. Distribution marker files (/etc/debian_version, /etc/arch-release, ...)

Each probe is bounded; detection never blocks on a hung command.

Usage:
    from phpforge.core.platform import detect_distribution, detect_package_manager

    distribution, error = detect_distribution()
    profile = detect_package_manager()
    print(f"{distribution}: installing with {profile.command}")
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Tuple

import distro

from phpforge.catalog.package_managers import PACKAGE_MANAGERS, PackageManagerProfile
from phpforge.core.exceptions import (
    DistributionDetectionError,
    PackageManagerNotFoundError,
)

logger = logging.getLogger(__name__)

UNKNOWN_DISTRIBUTION = "unknown"

MARKER_FILES = {
    "/etc/redhat-release": "rhel",
    "/etc/debian_version": "debian",
    "/etc/arch-release": "arch",
    "/etc/SuSE-release": "opensuse",
    "/etc/alpine-release": "alpine",
}


def _distribution_from_os_release() -> str:
    """Read ID= from the release metadata file."""
    try:
        return (distro.os_release_attr("id") or "").strip().lower()
    except OSError as e:
        logger.debug(f"Could not read os-release: {e}")
        return ""


def _distribution_from_lsb_release() -> str:
    """Ask lsb_release for the distributor ID."""
    if shutil.which("lsb_release") is None:
        return ""
    try:
        result = subprocess.run(
            ["lsb_release", "-si"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"lsb_release failed: {e}")
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.strip().lower()


def _distribution_from_markers(markers: Mapping[str, str] = MARKER_FILES) -> str:
    """Check for distribution-specific marker files."""
    for file_path, name in markers.items():
        if Path(file_path).exists():
            return name
    return ""


def detect_distribution() -> Tuple[str, Optional[DistributionDetectionError]]:
    """
    Detect the Linux distribution.

    Returns:
        (distribution_id, None) on success, or
        ("unknown", DistributionDetectionError) if no probe recognized the host

    Example:
        >>> distribution, error = detect_distribution()
        >>> distribution
        'ubuntu'
    """
    for probe in (
        _distribution_from_os_release,
        _distribution_from_lsb_release,
        _distribution_from_markers,
    ):
        name = probe()
        if name:
            logger.debug(f"Detected distribution '{name}' via {probe.__name__}")
            return name, None

    return UNKNOWN_DISTRIBUTION, DistributionDetectionError(
        "Unable to detect Linux distribution"
    )


def detect_package_manager(
    profiles: Mapping[str, PackageManagerProfile] = PACKAGE_MANAGERS,
) -> PackageManagerProfile:
    """
    Bind to the first package manager whose executable is on PATH.

    Profiles are probed in registry order.

    Raises:
        PackageManagerNotFoundError: If none of the executables is found
    """
    for profile in profiles.values():
        if shutil.which(profile.command):
            logger.debug(f"Using package manager: {profile.name}")
            return profile

    raise PackageManagerNotFoundError([p.command for p in profiles.values()])

