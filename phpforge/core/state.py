"""
Installed-state store for phpforge.

This module records every installed PHP line: its exact version, install
prefix, enabled extensions, CLI binding and staged extension changes. State is
persisted to `state.json` in the user config directory.

Every mutation is applied to a copy of the loaded state and written with an
atomic temp-file rename before it becomes visible, so a crash mid-write can
never leave a half-written store and a failed write leaves the in-memory
state unchanged.

Example:
    >>> from phpforge.core.state import StateStore
    >>>
    >>> store = StateStore(layout.state_file)
    >>> store.add_installed('8.3', '8.3.12', '/opt/phpforge/php/php8.3', ['curl'])
    >>> store.set_cli('8.3')
    >>> store.get('8.3').is_cli
    True
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from phpforge.catalog.extensions import sort_extensions
from phpforge.core.exceptions import NotInstalledError, StateError
from phpforge.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


@dataclass
class InstalledVersion:
    """
    One installed PHP line.

    Attributes:
        major_minor: Line identifier ('8.3'), unique across records
        exact_version: Installed release ('8.3.12')
        install_path: Install prefix
        extensions: Enabled extensions, kept sorted and unique
        is_cli: Whether this version is bound to the generic `php` name
        needs_rebuild: Whether staged changes are waiting for a rebuild
        fpm_socket_path: PHP-FPM listen socket
        ini_path: php.ini location
        install_date: ISO 8601 timestamp of the first install
        pending_add: Extensions staged for addition
        pending_remove: Extensions staged for removal
    """

    major_minor: str
    exact_version: str
    install_path: str
    extensions: List[str] = field(default_factory=list)
    is_cli: bool = False
    needs_rebuild: bool = False
    fpm_socket_path: str = ""
    ini_path: str = ""
    install_date: str = ""
    pending_add: List[str] = field(default_factory=list)
    pending_remove: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.extensions = sort_extensions(self.extensions)
        self.pending_add = sort_extensions(self.pending_add)
        self.pending_remove = sort_extensions(self.pending_remove)

    @property
    def has_pending_changes(self) -> bool:
        return bool(self.pending_add or self.pending_remove)

    def effective_extensions(self) -> List[str]:
        """Extension set after applying staged changes."""
        result = set(self.extensions) | set(self.pending_add)
        result -= set(self.pending_remove)
        return sort_extensions(result)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "major_minor": self.major_minor,
            "exact_version": self.exact_version,
            "install_path": self.install_path,
            "extensions": list(self.extensions),
            "is_cli": self.is_cli,
            "needs_rebuild": self.needs_rebuild,
            "fpm_socket_path": self.fpm_socket_path,
            "ini_path": self.ini_path,
            "install_date": self.install_date,
            "pending_add": list(self.pending_add),
            "pending_remove": list(self.pending_remove),
        }

    @classmethod
    def from_dict(cls, major_minor: str, data: dict) -> "InstalledVersion":
        """
        Build a record from its serialized form.

        Raises:
            KeyError: If a required field is missing
            TypeError: If a field has the wrong shape
        """
        return cls(
            major_minor=data.get("major_minor", major_minor),
            exact_version=data["exact_version"],
            install_path=data["install_path"],
            extensions=list(data.get("extensions", [])),
            is_cli=bool(data.get("is_cli", False)),
            needs_rebuild=bool(data.get("needs_rebuild", False)),
            fpm_socket_path=data.get("fpm_socket_path", ""),
            ini_path=data.get("ini_path", ""),
            install_date=data.get("install_date", ""),
            pending_add=list(data.get("pending_add", [])),
            pending_remove=list(data.get("pending_remove", [])),
        )


class StateStore:
    """
    Persistent record of installed PHP versions.

    All mutation of "what is installed" goes through this class. The store
    assumes a single writer; there is no cross-process locking.

    Attributes:
        state_file: Path to state.json
    """

    def __init__(self, state_file: Path):
        self.state_file = Path(state_file)
        self._records: Optional[Dict[str, InstalledVersion]] = None

    # ------------------------------------------------------------------
    # Loading and saving
    # ------------------------------------------------------------------

    def load(self) -> Dict[str, InstalledVersion]:
        """
        Load state from disk.

        A missing file yields an empty store. A corrupt file is logged and
        also treated as empty.

        Returns:
            Mapping of major.minor line to record
        """
        if self._records is not None:
            return self._records

        if not self.state_file.exists():
            logger.debug(f"State file not found, starting empty: {self.state_file}")
            self._records = {}
            return self._records

        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = json.load(f)

            installed = data.get("installed", {})
            if not isinstance(installed, dict):
                raise TypeError("'installed' must be an object")

            self._records = {
                line: InstalledVersion.from_dict(line, record)
                for line, record in installed.items()
            }
            logger.debug(f"Loaded state from {self.state_file}")

        except (json.JSONDecodeError, TypeError, KeyError, AttributeError) as e:
            logger.warning(
                f"Invalid state file {self.state_file}, resetting to empty: {e}"
            )
            self._records = {}

        return self._records

    def _save(self, records: Dict[str, InstalledVersion]):
        """Write records atomically and make them the current state."""
        payload = {
            "version": STATE_FORMAT_VERSION,
            "installed": {
                line: records[line].to_dict() for line in sorted(records)
            },
        }
        try:
            atomic_write(self.state_file, json.dumps(payload, indent=2))
        except OSError as e:
            raise StateError(f"Failed to write state file {self.state_file}: {e}")

        self._records = records
        logger.debug(f"Saved state to {self.state_file}")

    def _mutate(self, change: Callable[[Dict[str, InstalledVersion]], None]):
        """Apply `change` to a copy of the state, persist it, then publish it."""
        records = copy.deepcopy(self.load())
        change(records)
        self._save(records)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, line: str) -> Optional[InstalledVersion]:
        """Return a copy of the record for `line`, or None."""
        record = self.load().get(line)
        return copy.deepcopy(record) if record else None

    def require(self, line: str) -> InstalledVersion:
        """
        Return the record for `line`.

        Raises:
            NotInstalledError: If the line is not installed
        """
        record = self.get(line)
        if record is None:
            raise NotInstalledError(line)
        return record

    def is_installed(self, line: str) -> bool:
        return line in self.load()

    def list_installed(self) -> List[InstalledVersion]:
        """All records sorted by line."""
        records = self.load()
        return [copy.deepcopy(records[line]) for line in sorted(records, key=_line_key)]

    def get_cli(self) -> Optional[InstalledVersion]:
        """The CLI-bound record, if any."""
        for record in self.load().values():
            if record.is_cli:
                return copy.deepcopy(record)
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_installed(
        self,
        line: str,
        exact_version: str,
        install_path: Path,
        extensions: Iterable[str],
        fpm_socket_path: str = "",
        ini_path: str = "",
    ) -> InstalledVersion:
        """
        Record a newly installed line.

        Raises:
            StateError: If the line is already recorded
        """
        record = InstalledVersion(
            major_minor=line,
            exact_version=exact_version,
            install_path=str(install_path),
            extensions=list(extensions),
            fpm_socket_path=str(fpm_socket_path),
            ini_path=str(ini_path),
            install_date=datetime.now().isoformat(timespec="seconds"),
        )

        def change(records):
            if line in records:
                raise StateError(f"PHP {line} is already recorded as installed")
            records[line] = record

        self._mutate(change)
        logger.debug(f"Recorded PHP {exact_version} at {install_path}")
        return copy.deepcopy(record)

    def remove_installed(self, line: str) -> InstalledVersion:
        """
        Delete the record for `line`.

        Raises:
            NotInstalledError: If the line is not installed
        """
        removed = self.require(line)

        def change(records):
            del records[line]

        self._mutate(change)
        logger.debug(f"Removed PHP {line} from state")
        return removed

    def set_cli(self, line: str) -> None:
        """
        Bind the CLI to `line` and unbind every other record.

        Raises:
            NotInstalledError: If the line is not installed
        """
        self.require(line)

        def change(records):
            for other, record in records.items():
                record.is_cli = other == line

        self._mutate(change)
        logger.debug(f"CLI bound to PHP {line}")

    def update_extensions(self, line: str, extensions: Iterable[str]) -> InstalledVersion:
        """
        Commit a new extension set after a successful rebuild.

        Staged changes are cleared and the rebuild flag is reset.

        Raises:
            NotInstalledError: If the line is not installed
        """
        self.require(line)
        new_set = sort_extensions(extensions)

        def change(records):
            record = records[line]
            record.extensions = new_set
            record.pending_add = []
            record.pending_remove = []
            record.needs_rebuild = False

        self._mutate(change)
        return self.require(line)

    def mark_rebuilt(
        self,
        line: str,
        exact_version: str,
        extensions: Iterable[str],
        ini_path: Optional[str] = None,
        fpm_socket_path: Optional[str] = None,
    ) -> InstalledVersion:
        """Commit the result of a rebuild, possibly at a new exact version."""
        self.require(line)
        new_set = sort_extensions(extensions)

        def change(records):
            record = records[line]
            record.exact_version = exact_version
            record.extensions = new_set
            record.pending_add = []
            record.pending_remove = []
            record.needs_rebuild = False
            if ini_path is not None:
                record.ini_path = str(ini_path)
            if fpm_socket_path is not None:
                record.fpm_socket_path = str(fpm_socket_path)

        self._mutate(change)
        return self.require(line)

    def stage_extensions(
        self,
        line: str,
        add: Iterable[str] = (),
        remove: Iterable[str] = (),
    ) -> InstalledVersion:
        """
        Stage extension changes to be applied by the next rebuild.

        Adding an extension cancels a staged removal of it and vice versa.
        Adding an already enabled extension or removing one that is not
        enabled is a no-op.

        Raises:
            NotInstalledError: If the line is not installed
        """
        self.require(line)
        add = set(add)
        remove = set(remove)

        def change(records):
            record = records[line]
            enabled = set(record.extensions)
            pending_add = set(record.pending_add)
            pending_remove = set(record.pending_remove)

            for name in add:
                pending_remove.discard(name)
                if name not in enabled:
                    pending_add.add(name)
            for name in remove:
                pending_add.discard(name)
                if name in enabled:
                    pending_remove.add(name)

            record.pending_add = sort_extensions(pending_add)
            record.pending_remove = sort_extensions(pending_remove)
            record.needs_rebuild = record.has_pending_changes

        self._mutate(change)
        return self.require(line)

    def clear_pending(self, line: str) -> InstalledVersion:
        """Drop staged extension changes."""
        self.require(line)

        def change(records):
            record = records[line]
            record.pending_add = []
            record.pending_remove = []
            record.needs_rebuild = False

        self._mutate(change)
        return self.require(line)


def _line_key(line: str):
    """Numeric sort key for major.minor strings."""
    try:
        return tuple(int(part) for part in line.split("."))
    except ValueError:
        return (float("inf"), line)
