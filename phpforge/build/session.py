"""
Per-build bookkeeping: the session record and its log file.

While a build runs, a DEBUG file handler is attached to the `phpforge` logger
and to the command output logger, so the log captures every stage message and
the full output of every spawned command. The console only ever sees the
stage messages.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from phpforge.core.process import output_logger

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass
class BuildSession:
    """
    Transient state of one build.

    Attributes:
        major_minor: Line being built
        exact_version: Release being built
        download_url: Source tarball URL
        source_package: Top-level directory inside the tarball
        configure_flags: Full configure argument list
        work_dir: Temporary workspace (always deleted at the end)
        log_path: Build log (deleted on success, kept on failure)
        stage: Name of the stage currently running
        succeeded: Whether every stage completed
        binary_path: Verified PHP binary
    """

    major_minor: str
    exact_version: str
    download_url: str
    source_package: str
    work_dir: Path
    log_path: Path
    configure_flags: List[str] = field(default_factory=list)
    stage: str = "prepare"
    succeeded: bool = False
    binary_path: Optional[Path] = None

    @property
    def source_dir(self) -> Path:
        return self.work_dir / self.source_package


def build_log_path(log_dir: Path, exact_version: str, now: Optional[datetime] = None) -> Path:
    """
    Path of a new build log.

    Example:
        >>> build_log_path(Path("/home/alice/.config/phpforge/logs"), "8.3.12")
        PosixPath('/home/alice/.config/phpforge/logs/phpforge-php8.3.12-20241018-142530.log')
    """
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return Path(log_dir) / f"phpforge-php{exact_version}-{stamp}.log"


class BuildLog:
    """
    Context manager routing build diagnostics to a log file.

    The handler is removed on exit. Whether the file survives is decided by
    the caller through `discard()`.

    Example:
        >>> with BuildLog(path) as build_log:
        ...     run_stages()
        ...     build_log.discard()
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._handler: Optional[logging.FileHandler] = None
        self._loggers = [logging.getLogger("phpforge"), output_logger]
        self._levels = {}

    def __enter__(self) -> "BuildLog":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handler = logging.FileHandler(self.path, encoding="utf-8")
        self._handler.setLevel(logging.DEBUG)
        self._handler.setFormatter(logging.Formatter(LOG_FORMAT))

        for target in self._loggers:
            self._levels[target.name] = target.level
            # The console handlers keep their own levels
            target.setLevel(logging.DEBUG)
            target.addHandler(self._handler)
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        if self._handler is None:
            return
        for target in self._loggers:
            target.removeHandler(self._handler)
            target.setLevel(self._levels.get(target.name, logging.NOTSET))
        self._handler.close()
        self._handler = None

    def discard(self):
        """Close the log and delete the file."""
        self.close()
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove build log {self.path}: {e}")
