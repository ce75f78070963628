"""
Symlink management for published PHP binaries.

Every installed line is published twice:

    <bin_dir>/php<mm>         -> verified binary inside the install prefix
    <system_bin>/php<mm>      -> <bin_dir>/php<mm>

and the CLI-bound line additionally owns the generic name:

    <system_bin>/php          -> <bin_dir>/php<mm>

Links are always replaced (remove, then create), never edited in place.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from phpforge.core.directory import Layout
from phpforge.core.filesystem import is_relative_to

logger = logging.getLogger(__name__)


def resolve_link(link_path: Path) -> Optional[Path]:
    """
    Absolute target of a symlink.

    Returns:
        The target path (which may not exist), or None if not a symlink
    """
    link_path = Path(link_path)
    if not link_path.is_symlink():
        return None

    target = Path(os.readlink(link_path))
    if not target.is_absolute():
        target = link_path.parent / target
    return Path(os.path.normpath(target))


def remove_link(link_path: Path) -> bool:
    """
    Remove a symlink or regular file at `link_path`.

    Returns:
        True if something was removed

    Raises:
        IsADirectoryError: If `link_path` is a real directory
    """
    link_path = Path(link_path)
    if link_path.is_symlink() or link_path.is_file():
        link_path.unlink()
        logger.debug(f"Removed {link_path}")
        return True
    if link_path.is_dir():
        raise IsADirectoryError(f"Refusing to replace directory with a link: {link_path}")
    return False


def create_link(link_path: Path, target_path: Path) -> Path:
    """
    Point `link_path` at `target_path`, replacing whatever is there.

    Raises:
        FileNotFoundError: If the target does not exist
        OSError: If the link cannot be created
    """
    link_path = Path(link_path)
    target_path = Path(target_path)

    if not target_path.exists():
        raise FileNotFoundError(f"Link target does not exist: {target_path}")

    remove_link(link_path)
    link_path.parent.mkdir(parents=True, exist_ok=True)
    os.symlink(target_path, link_path)
    logger.debug(f"Created symlink: {link_path} -> {target_path}")
    return link_path


def is_managed_link(link_path: Path, base_dir: Path) -> bool:
    """True if `link_path` is a symlink pointing into the managed tree."""
    target = resolve_link(link_path)
    return target is not None and is_relative_to(target, Path(base_dir))


def is_broken_link(link_path: Path) -> bool:
    link_path = Path(link_path)
    return link_path.is_symlink() and not link_path.exists()


def publish_links(
    layout: Layout, major_minor: str, binary: Path, is_cli: bool = False
) -> List[Path]:
    """
    Publish the version-scoped links (and the generic link for the CLI line).

    Returns:
        The links created
    """
    managed = create_link(layout.managed_binary(major_minor), binary)
    created = [managed, create_link(layout.system_binary(major_minor), managed)]
    if is_cli:
        created.append(create_link(layout.global_binary, managed))
    logger.debug(f"Published PHP {major_minor}: {', '.join(str(p) for p in created)}")
    return created


def publish_cli_link(layout: Layout, major_minor: str) -> Path:
    """
    Point the generic `php` name at an installed line.

    Raises:
        FileNotFoundError: If the line has no managed link
    """
    return create_link(layout.global_binary, layout.managed_binary(major_minor))


def unpublish_links(layout: Layout, major_minor: str, is_cli: bool = False) -> List[Path]:
    """
    Remove every link that belongs to a line.

    The generic link is only removed when it is the CLI line's and still
    points into the managed tree.
    """
    removed = []
    for link in (layout.system_binary(major_minor), layout.managed_binary(major_minor)):
        if remove_link(link):
            removed.append(link)

    if is_cli and is_managed_link(layout.global_binary, layout.base_dir):
        if remove_link(layout.global_binary):
            removed.append(layout.global_binary)
    return removed


@dataclass
class Conflict:
    """An unmanaged PHP installation visible to users."""

    path: Path
    description: str

    def __str__(self) -> str:
        return f"{self.path} ({self.description})"


def detect_unmanaged_php(layout: Layout) -> List[Conflict]:
    """
    Find PHP binaries that phpforge does not own.

    Checks the generic name in the system bin directory, then the first `php`
    on the search path.
    """
    conflicts: List[Conflict] = []
    generic = layout.global_binary

    if generic.is_symlink():
        if not is_managed_link(generic, layout.base_dir):
            conflicts.append(Conflict(generic, f"symlink to {resolve_link(generic)}"))
    elif generic.exists():
        conflicts.append(Conflict(generic, "system binary"))

    found = shutil.which("php")
    if found:
        found_path = Path(found)
        real = found_path.resolve()
        already = any(c.path == found_path for c in conflicts)
        if (
            not already
            and found_path != generic
            and not is_relative_to(real, layout.base_dir.resolve())
            and not is_managed_link(found_path, layout.base_dir)
        ):
            conflicts.append(Conflict(found_path, "on PATH"))

    return conflicts


def find_broken_links(layout: Layout, lines: List[str]) -> List[Path]:
    """Managed or published links of `lines` whose targets are gone."""
    candidates = []
    for line in lines:
        candidates.extend([layout.managed_binary(line), layout.system_binary(line)])
    candidates.append(layout.global_binary)
    return [
        link
        for link in candidates
        if is_broken_link(link) and is_managed_link(link, layout.base_dir)
    ]
