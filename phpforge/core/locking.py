"""
Build workspace locking for phpforge.

Two builds of the same major.minor line share a workspace directory name and
an install prefix, so a second concurrent build must not start. The lock is a
`filelock` file next to the workspace; it is released automatically if the
holding process dies.

The state store and version cache are not locked.

Usage:
    from phpforge.core.locking import build_lock

    with build_lock(layout.build_dir, "8.3"):
        # This process owns the 8.3 workspace
        run_build()
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

from phpforge.core.exceptions import BuildInProgressError

logger = logging.getLogger(__name__)


def build_lock_path(build_dir: Path, line: str) -> Path:
    """Lock file guarding the workspace of one line."""
    return Path(build_dir) / f"phpforge-build-php{line}.lock"


@contextmanager
def build_lock(build_dir: Path, line: str, timeout: float = 0):
    """
    Acquire the build lock for `line` without waiting (by default).

    Args:
        build_dir: Parent of build workspaces
        line: Major.minor line being built
        timeout: Seconds to wait for the lock (0 fails immediately)

    Raises:
        BuildInProgressError: If another process holds the lock
    """
    lock_path = build_lock_path(build_dir, line)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path), timeout=timeout)

    try:
        lock.acquire()
    except LockTimeout as e:
        raise BuildInProgressError(
            f"Another phpforge process is already building PHP {line} "
            f"(lock: {lock_path})",
            stage="prepare",
        ) from e

    logger.debug(f"Acquired build lock: {lock_path}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Released build lock: {lock_path}")
