"""
Upstream PHP version discovery.
"""

from phpforge.versions.registry import (
    VersionCache,
    VersionInfo,
    VersionRegistry,
    compare_versions,
    extract_version,
    is_supported_line,
    major_minor,
    normalize_line,
)

__all__ = [
    "VersionCache",
    "VersionInfo",
    "VersionRegistry",
    "compare_versions",
    "extract_version",
    "is_supported_line",
    "major_minor",
    "normalize_line",
]
