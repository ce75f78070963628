"""
Upstream PHP release discovery with a time-boxed cache.

The php.net release index is queried once per supported major.minor line.
Each response names the latest exact release and its source artifacts; the
`.tar.gz` artifact's filename is combined with the distribution host to form
the download URL.

Results are cached in `version_cache.json`. A cache younger than the validity
window is returned without any network access. A fetch that fails for any
line fails as a whole and leaves the cache file untouched.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from packaging.version import InvalidVersion, Version

from phpforge.config.parser import (
    DEFAULT_DISTRIBUTION_URL,
    DEFAULT_RELEASE_INDEX_URL,
    DEFAULT_SUPPORTED_VERSIONS,
)
from phpforge.core.download import fetch_json
from phpforge.core.exceptions import (
    NetworkError,
    UnsupportedVersionError,
    VersionFetchError,
)
from phpforge.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 3600

_EXACT_VERSION = re.compile(r"\d+\.\d+\.\d+")
_MAJOR_MINOR = re.compile(r"^(\d+\.\d+)")


# ============================================================================
# Version helpers
# ============================================================================


def compare_versions(a: str, b: str) -> int:
    """
    Compare two dotted numeric versions.

    Components are compared as integers; the shorter version is padded with
    zeros, so "8.3" equals "8.3.0" and "8.3.10" is newer than "8.3.2".

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b

    Raises:
        ValueError: If a component is not numeric
    """
    parts_a = [int(p) for p in a.strip().split(".")]
    parts_b = [int(p) for p in b.strip().split(".")]
    length = max(len(parts_a), len(parts_b))
    parts_a += [0] * (length - len(parts_a))
    parts_b += [0] * (length - len(parts_b))

    for left, right in zip(parts_a, parts_b):
        if left < right:
            return -1
        if left > right:
            return 1
    return 0


def extract_version(text: str) -> Optional[str]:
    """Return the first x.y.z version found in `text`."""
    match = _EXACT_VERSION.search(text or "")
    return match.group(0) if match else None


def major_minor(version: str) -> str:
    """
    Return the major.minor prefix of a version string.

    Example:
        >>> major_minor("8.3.12")
        '8.3'
    """
    match = _MAJOR_MINOR.match(version.strip())
    return match.group(1) if match else version.strip()


def normalize_line(value: str) -> str:
    """
    Normalize user input naming a PHP line.

    Example:
        >>> normalize_line("PHP8.3")
        '8.3'
    """
    value = value.strip()
    if value.lower().startswith("php"):
        value = value[3:]
    return value


def is_supported_line(line: str, supported: Sequence[str] = DEFAULT_SUPPORTED_VERSIONS) -> bool:
    """Return True if `line` (after normalization) is in `supported`."""
    return normalize_line(line) in supported


# ============================================================================
# Data model
# ============================================================================


@dataclass
class VersionCache:
    """
    Cached result of one complete release index fetch.

    Attributes:
        last_updated: When the fetch completed
        latest_versions: major.minor line -> latest exact version
        download_urls: exact version -> source tarball URL
        checksums: exact version -> SHA256 of the tarball (when published)
    """

    last_updated: datetime
    latest_versions: Dict[str, str] = field(default_factory=dict)
    download_urls: Dict[str, str] = field(default_factory=dict)
    checksums: Dict[str, str] = field(default_factory=dict)

    def is_fresh(self, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        age = now - self.last_updated
        # A timestamp in the future means the clock moved; refetch
        return timedelta(0) <= age < timedelta(seconds=ttl_seconds)

    def covers(self, lines: Sequence[str]) -> bool:
        return all(
            line in self.latest_versions
            and self.latest_versions[line] in self.download_urls
            for line in lines
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "last_updated": self.last_updated.isoformat(),
            "latest_versions": dict(self.latest_versions),
            "download_urls": dict(self.download_urls),
            "checksums": dict(self.checksums),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VersionCache":
        return cls(
            last_updated=datetime.fromisoformat(data["last_updated"]),
            latest_versions=dict(data["latest_versions"]),
            download_urls=dict(data["download_urls"]),
            checksums=dict(data.get("checksums", {})),
        )


@dataclass(frozen=True)
class VersionInfo:
    """Everything needed to build one exact release."""

    major_minor: str
    exact_version: str
    download_url: str
    sha256: Optional[str] = None

    @property
    def source_package(self) -> str:
        """Top-level directory name inside the source tarball."""
        return f"php-{self.exact_version}"


# ============================================================================
# Registry client
# ============================================================================


class VersionRegistry:
    """
    Client for the upstream release index.

    Attributes:
        cache_file: Path of the persisted cache
        supported_versions: Lines queried on every fetch
        ttl_seconds: Cache validity window
    """

    def __init__(
        self,
        cache_file: Path,
        supported_versions: Sequence[str] = DEFAULT_SUPPORTED_VERSIONS,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        index_url: str = DEFAULT_RELEASE_INDEX_URL,
        distribution_url: str = DEFAULT_DISTRIBUTION_URL,
        timeout: int = 10,
    ):
        self.cache_file = Path(cache_file)
        self.supported_versions = list(supported_versions)
        self.ttl_seconds = ttl_seconds
        self.index_url = index_url
        self.distribution_url = distribution_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, cache_file: Path) -> "VersionRegistry":
        return cls(
            cache_file=cache_file,
            supported_versions=settings.supported_versions,
            ttl_seconds=settings.cache_ttl,
            index_url=settings.release_index_url,
            distribution_url=settings.distribution_url,
            timeout=settings.http_timeout,
        )

    def is_supported(self, line: str) -> bool:
        return is_supported_line(line, self.supported_versions)

    def require_supported(self, line: str) -> str:
        """
        Normalize and validate a line.

        Raises:
            UnsupportedVersionError: If the line is not supported
        """
        line = normalize_line(line)
        if not self.is_supported(line):
            raise UnsupportedVersionError(line, self.supported_versions)
        return line

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def load_cache(self) -> Optional[VersionCache]:
        """
        Read the cache file regardless of age.

        Returns:
            The cache, or None if missing or unreadable
        """
        if not self.cache_file.exists():
            return None
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                return VersionCache.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable version cache {self.cache_file}: {e}")
            return None

    def get_cached(self, now: Optional[datetime] = None) -> Optional[VersionCache]:
        """Return the cache only if it is within the validity window."""
        cache = self.load_cache()
        if cache is None:
            return None
        if not cache.is_fresh(self.ttl_seconds, now):
            logger.debug("Version cache expired")
            return None
        if not cache.covers(self.supported_versions):
            logger.debug("Version cache does not cover every supported line")
            return None
        return cache

    def save_cache(self, cache: VersionCache):
        atomic_write(self.cache_file, json.dumps(cache.to_dict(), indent=2))
        logger.debug(f"Saved version cache to {self.cache_file}")

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _fetch_line(self, line: str) -> Dict[str, Optional[str]]:
        """Query the release index for one line."""
        url = self.index_url.format(line=line)
        logger.debug(f"Querying release index: {url}")

        try:
            data = fetch_json(url, timeout=self.timeout)
        except NetworkError as e:
            raise VersionFetchError(f"Failed to fetch PHP {line} releases: {e}") from e

        exact = str(data.get("version", "")).strip()
        try:
            Version(exact)
        except InvalidVersion:
            raise VersionFetchError(
                f"Release index returned an invalid version for PHP {line}: {exact!r}"
            )
        if major_minor(exact) != line:
            raise VersionFetchError(
                f"Release index returned PHP {exact} for line {line}"
            )

        sources = data.get("source") or []
        for source in sources:
            filename = source.get("filename", "") if isinstance(source, dict) else ""
            if filename.endswith(".tar.gz"):
                return {
                    "version": exact,
                    "url": self.distribution_url.format(filename=filename),
                    "sha256": source.get("sha256"),
                }

        raise VersionFetchError(f"No .tar.gz source archive listed for PHP {exact}")

    def fetch(self) -> VersionCache:
        """
        Query every supported line and overwrite the cache.

        Raises:
            VersionFetchError: If any line fails; the cache is not written
        """
        latest: Dict[str, str] = {}
        urls: Dict[str, str] = {}
        checksums: Dict[str, str] = {}

        for line in self.supported_versions:
            release = self._fetch_line(line)
            latest[line] = release["version"]
            urls[release["version"]] = release["url"]
            if release.get("sha256"):
                checksums[release["version"]] = release["sha256"]

        cache = VersionCache(
            last_updated=datetime.now(),
            latest_versions=latest,
            download_urls=urls,
            checksums=checksums,
        )
        self.save_cache(cache)
        logger.debug(f"Latest versions: {json.dumps(latest)}")
        return cache

    def get_latest_versions(self, force_refresh: bool = False) -> VersionCache:
        """
        Latest exact version and download URL for every supported line.

        Args:
            force_refresh: Ignore a fresh cache and query upstream

        Raises:
            VersionFetchError: If the index cannot be fetched
        """
        if not force_refresh:
            cached = self.get_cached()
            if cached is not None:
                logger.debug("Using cached version data")
                return cached

        return self.fetch()

    def get_version_info(self, line: str, force_refresh: bool = False) -> VersionInfo:
        """
        Resolve a line to its latest exact version and download URL.

        Raises:
            UnsupportedVersionError: If the line is not supported
            VersionFetchError: If the index cannot be fetched
        """
        line = self.require_supported(line)
        cache = self.get_latest_versions(force_refresh)

        exact = cache.latest_versions.get(line)
        url = cache.download_urls.get(exact) if exact else None
        if not exact or not url:
            raise VersionFetchError(f"No release information for PHP {line}")

        return VersionInfo(
            major_minor=line,
            exact_version=exact,
            download_url=url,
            sha256=cache.checksums.get(exact),
        )

    def check_for_updates(
        self, installed: Mapping[str, str], force_refresh: bool = True
    ) -> Dict[str, str]:
        """
        Find installed lines with a newer upstream release.

        Args:
            installed: major.minor line -> installed exact version
            force_refresh: Query upstream even if the cache is fresh

        Returns:
            line -> newer exact version, for outdated lines only
        """
        cache = self.get_latest_versions(force_refresh)
        updates: Dict[str, str] = {}
        for line, current in installed.items():
            latest = cache.latest_versions.get(line)
            if latest and compare_versions(latest, current) > 0:
                updates[line] = latest
        return updates

    def list_available(self, force_refresh: bool = False) -> List[VersionInfo]:
        """VersionInfo for every supported line."""
        cache = self.get_latest_versions(force_refresh)
        return [
            VersionInfo(
                major_minor=line,
                exact_version=cache.latest_versions[line],
                download_url=cache.download_urls[cache.latest_versions[line]],
                sha256=cache.checksums.get(cache.latest_versions[line]),
            )
            for line in self.supported_versions
        ]
