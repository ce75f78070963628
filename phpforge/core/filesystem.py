"""
File system utilities for phpforge.

This module provides the file operations the build pipeline and the state
store rely on:
- Archive extraction with path validation (tar.gz, tar.xz, tar.bz2)
- Safe file operations (atomic writes, guarded deletion)
- Side-by-side directory replacement with rollback
- Executable search bounded to a directory tree
"""

import logging
import os
import shutil
import sys
import tarfile
import tempfile
from pathlib import Path
from typing import Iterator, Optional, Union

from phpforge.core.exceptions import PhpForgeError

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================


class FilesystemError(PhpForgeError):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Raised when archive extraction fails."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Raised when archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Raised when archive contains paths outside the destination."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to parent.

    Args:
        path: Path to check
        parent: Potential parent path

    Returns:
        True if path is under parent
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def remove_path(path: Union[str, Path]) -> bool:
    """
    Remove a file or symlink if it exists.

    Args:
        path: File or symlink to remove

    Returns:
        True if something was removed
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        return False
    path.unlink()
    return True


def iter_executables(root: Union[str, Path], name: str) -> Iterator[Path]:
    """
    Yield executable files named `name` anywhere under root.

    Results are sorted by depth, so shallower matches come first.

    Args:
        root: Directory to search
        name: File name to match

    Yields:
        Paths of matching executable files
    """
    root = Path(root)
    if not root.is_dir():
        return

    matches = []
    for dirpath, _dirnames, filenames in os.walk(root):
        if name in filenames:
            candidate = Path(dirpath) / name
            if candidate.is_file() and os.access(candidate, os.X_OK):
                matches.append(candidate)

    yield from sorted(matches, key=lambda p: (len(p.parts), str(p)))


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Args:
        path: Member path from archive
        destination: Extraction destination

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def extract_archive(archive_path: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Extract a source archive to a destination directory.

    Supported formats:
    - .tar.gz, .tgz
    - .tar.xz
    - .tar.bz2

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        ArchiveExtractionError: If extraction fails
        InsecureArchiveError: If archive contains malicious paths

    Example:
        >>> extract_archive('php-8.3.12.tar.gz', '/tmp/build')
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)

    archive_name = archive_path.name.lower()
    if archive_name.endswith((".tar.gz", ".tgz")):
        mode = "r:gz"
    elif archive_name.endswith(".tar.xz"):
        mode = "r:xz"
    elif archive_name.endswith((".tar.bz2", ".tbz2")):
        mode = "r:bz2"
    else:
        raise UnsupportedArchiveFormat(
            f"Unsupported archive format: {archive_path.suffix}. "
            "Supported: .tar.gz, .tar.xz, .tar.bz2"
        )

    try:
        _extract_tar(archive_path, destination, mode)
    except InsecureArchiveError:
        raise
    except Exception as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}")


def _extract_tar(archive_path: Path, destination: Path, mode: str) -> None:
    """Extract a tar archive with specified compression."""
    with tarfile.open(archive_path, mode) as tar:
        members = tar.getmembers()

        for member in members:
            _validate_archive_path(member.name, destination)

        # The data filter is only available on 3.12+, paths are validated above
        if sys.version_info >= (3, 12):
            tar.extractall(destination, filter="data")
        else:
            tar.extractall(destination)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('state.json', '{"installed": {}}')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/opt/phpforge/php/php8.3', require_prefix='/opt/phpforge')
        >>> safe_rmtree('/usr/bin', require_prefix='/opt/phpforge')  # ValueError
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix) or path == require_prefix:
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except Exception as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}")


def replace_directory(live: Union[str, Path], staged: Union[str, Path]) -> None:
    """
    Replace a live directory with a fully prepared staged one.

    The live directory is first moved aside to `<live>.old`, then the staged
    directory is moved into place and the backup is removed. If moving the
    staged directory fails, the backup is restored so the previous contents
    stay in service.

    Args:
        live: Directory currently in use (may not exist yet)
        staged: Complete replacement directory

    Raises:
        FilesystemError: If the swap fails (after restoring the backup)
    """
    live = Path(live)
    staged = Path(staged)

    if not staged.is_dir():
        raise FilesystemError(f"Staged directory does not exist: {staged}")

    backup = live.with_name(live.name + ".old")
    if backup.exists():
        safe_rmtree(backup)

    had_live = live.exists()
    if had_live:
        logger.debug(f"Moving {live} aside to {backup}")
        live.rename(backup)

    try:
        live.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(staged), str(live))
    except Exception as e:
        if had_live:
            logger.warning(f"Restoring {live} from backup after failed swap")
            if live.exists():
                safe_rmtree(live)
            backup.rename(live)
        raise FilesystemError(f"Failed to replace '{live}' with '{staged}': {e}")

    if had_live:
        safe_rmtree(backup)
    logger.debug(f"Replaced {live} with {staged}")


def chown_tree(path: Union[str, Path], uid: int, gid: int) -> None:
    """
    Recursively change ownership of a tree without following symlinks.

    Raises:
        FilesystemError: If ownership cannot be changed
    """
    path = Path(path)
    try:
        os.chown(path, uid, gid, follow_symlinks=False)
        for dirpath, dirnames, filenames in os.walk(path):
            for name in dirnames + filenames:
                os.chown(os.path.join(dirpath, name), uid, gid, follow_symlinks=False)
    except OSError as e:
        raise FilesystemError(f"Failed to change ownership of '{path}': {e}")


__all__ = [
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "is_relative_to",
    "remove_path",
    "iter_executables",
    "extract_archive",
    "atomic_write",
    "safe_rmtree",
    "replace_directory",
    "chown_tree",
]
