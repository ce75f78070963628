"""
Locating and verifying the PHP binary produced by a build.

`make install` does not always put the CLI binary where expected (some
configure combinations only install php-fpm, and prefixes can be redirected),
so discovery walks an ordered list of candidate sources and accepts the first
executable that reports the expected version.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from phpforge.core.exceptions import BinaryVerificationError, CommandError
from phpforge.core.filesystem import iter_executables
from phpforge.core.process import Privilege, run_command
from phpforge.versions.registry import extract_version

logger = logging.getLogger(__name__)

VERIFY_TIMEOUT = 10

CandidateSource = Tuple[str, Callable[[], Iterable[Path]]]


def verify_binary(path: Path, expected_version: str) -> bool:
    """
    Check that `path` runs and reports `PHP <expected_version>`.

    Args:
        path: Candidate executable
        expected_version: Exact release, e.g. "8.3.12"

    Returns:
        True if the binary prints the expected version
    """
    path = Path(path)
    if not path.is_file() or not os.access(path, os.X_OK):
        logger.debug(f"Not an executable file: {path}")
        return False

    try:
        result = run_command(
            [path, "-v"],
            privilege=Privilege.USER,
            timeout=VERIFY_TIMEOUT,
            check=False,
        )
    except CommandError as e:
        logger.debug(f"Could not run {path}: {e}")
        return False

    if not result.succeeded:
        logger.debug(f"{path} -v exited with {result.returncode}")
        return False

    if f"PHP {expected_version}" not in result.output:
        reported = extract_version(result.output) or "no version"
        logger.debug(f"{path} reports {reported}, expected PHP {expected_version}")
        return False

    return True


def _single(path: Path) -> Callable[[], Iterable[Path]]:
    return lambda: [path]


def candidate_sources(
    prefix: Path,
    system_bin_dir: Path,
    major_minor: str,
    include_system: bool = True,
) -> List[CandidateSource]:
    """
    Ordered candidate sources for the binary of an install prefix.

    Sources are lazy so the recursive search only runs when every fixed
    location failed. A staged install passes include_system=False, since the
    published links still point at the live install.
    """
    prefix = Path(prefix)
    system_bin_dir = Path(system_bin_dir)
    sources: List[CandidateSource] = [
        ("prefix bin/php", _single(prefix / "bin" / "php")),
        ("prefix bin/php-cli", _single(prefix / "bin" / "php-cli")),
        ("prefix sbin/php-fpm", _single(prefix / "sbin" / "php-fpm")),
    ]
    if include_system:
        sources += [
            (f"system php{major_minor}", _single(system_bin_dir / f"php{major_minor}")),
            ("system php", _single(system_bin_dir / "php")),
        ]
    sources.append(("search under prefix", lambda: iter_executables(prefix, "php")))
    return sources


def iter_candidates(sources: Iterable[CandidateSource]) -> Iterator[Tuple[str, Path]]:
    seen = set()
    for label, source in sources:
        for path in source():
            key = str(path)
            if key in seen:
                continue
            seen.add(key)
            yield label, Path(path)


def discover_binary(
    prefix: Path,
    expected_version: str,
    system_bin_dir: Path,
    major_minor: str,
    sources: Optional[List[CandidateSource]] = None,
    include_system: bool = True,
) -> Path:
    """
    Find the first candidate binary that verifies.

    Args:
        prefix: Install prefix to search
        expected_version: Exact release the binary must report
        system_bin_dir: Directory with published symlinks
        major_minor: Line being built
        sources: Override the candidate sources
        include_system: Also try the published links in system_bin_dir

    Returns:
        Resolved path of the verified binary

    Raises:
        BinaryVerificationError: If no candidate verifies
    """
    if sources is None:
        sources = candidate_sources(prefix, system_bin_dir, major_minor, include_system)

    tried = []
    for label, path in iter_candidates(sources):
        if not path.exists() and not path.is_symlink():
            continue
        tried.append(str(path))
        if verify_binary(path, expected_version):
            # Links are published against the real file
            resolved = path.resolve()
            logger.debug(f"Verified PHP {expected_version} binary ({label}): {resolved}")
            return resolved
        logger.debug(f"Skipping candidate ({label}): {path}")

    detail = f" (tried: {', '.join(tried)})" if tried else ""
    raise BinaryVerificationError(
        f"No working PHP {expected_version} binary found under {prefix}{detail}",
        stage="verify",
    )
