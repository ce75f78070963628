"""
Tests for filesystem utilities.
"""

import io
import os
import tarfile
from pathlib import Path
from unittest.mock import patch

import pytest

from phpforge.core.filesystem import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
    atomic_write,
    extract_archive,
    iter_executables,
    remove_path,
    replace_directory,
    safe_rmtree,
)


def _make_tarball(path: Path, members: dict) -> Path:
    with tarfile.open(path, "w:gz") as tar:
        for name, content in members.items():
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return path


class TestAtomicWrite:
    """Tests for atomic_write."""

    def test_writes_text(self, temp_dir):
        """Text content is written and parents are created."""
        target = temp_dir / "nested" / "state.json"
        atomic_write(target, '{"installed": {}}')
        assert target.read_text() == '{"installed": {}}'

    def test_writes_bytes(self, temp_dir):
        """Binary content is written unchanged."""
        target = temp_dir / "blob"
        atomic_write(target, b"\x00\x01")
        assert target.read_bytes() == b"\x00\x01"

    def test_failure_keeps_original(self, temp_dir):
        """A failed rename leaves the previous file and no temp file."""
        target = temp_dir / "state.json"
        target.write_text("old")

        with patch.object(Path, "replace", side_effect=OSError("boom")):
            with pytest.raises(OSError):
                atomic_write(target, "new")

        assert target.read_text() == "old"
        assert [p.name for p in temp_dir.iterdir()] == ["state.json"]


class TestSafeRmtree:
    """Tests for safe_rmtree."""

    def test_removes_tree(self, temp_dir):
        """A directory under the prefix is removed."""
        victim = temp_dir / "build" / "work"
        (victim / "sub").mkdir(parents=True)
        (victim / "sub" / "file").write_text("x")

        safe_rmtree(victim, require_prefix=temp_dir / "build")
        assert not victim.exists()

    def test_refuses_outside_prefix(self, temp_dir):
        """Paths outside the prefix are never deleted."""
        outside = temp_dir / "keep"
        outside.mkdir()

        with pytest.raises(ValueError):
            safe_rmtree(outside, require_prefix=temp_dir / "build")
        assert outside.exists()

    def test_refuses_prefix_itself(self, temp_dir):
        """The prefix directory itself is protected."""
        with pytest.raises(ValueError):
            safe_rmtree(temp_dir, require_prefix=temp_dir)

    def test_missing_path_is_noop(self, temp_dir):
        """Removing a missing directory succeeds."""
        safe_rmtree(temp_dir / "missing", require_prefix=temp_dir)

    def test_file_raises(self, temp_dir):
        """A regular file is not a tree."""
        target = temp_dir / "file"
        target.write_text("x")
        with pytest.raises(FilesystemError):
            safe_rmtree(target)


class TestReplaceDirectory:
    """Tests for replace_directory."""

    def test_replaces_live(self, temp_dir):
        """The staged tree takes the live path and the backup is removed."""
        live = temp_dir / "php8.3"
        staged = temp_dir / "stage" / "php8.3"
        live.mkdir()
        (live / "old").write_text("old")
        staged.mkdir(parents=True)
        (staged / "new").write_text("new")

        replace_directory(live, staged)

        assert (live / "new").read_text() == "new"
        assert not (live / "old").exists()
        assert not staged.exists()
        assert not (temp_dir / "php8.3.old").exists()

    def test_creates_live(self, temp_dir):
        """A missing live directory is simply created."""
        staged = temp_dir / "staged"
        staged.mkdir()
        replace_directory(temp_dir / "live", staged)
        assert (temp_dir / "live").is_dir()

    def test_restores_backup_on_failure(self, temp_dir):
        """If the move fails the previous live tree is restored."""
        live = temp_dir / "php8.3"
        staged = temp_dir / "staged"
        live.mkdir()
        (live / "bin").write_text("old")
        staged.mkdir()

        with patch("phpforge.core.filesystem.shutil.move", side_effect=OSError("boom")):
            with pytest.raises(FilesystemError):
                replace_directory(live, staged)

        assert (live / "bin").read_text() == "old"
        assert not (temp_dir / "php8.3.old").exists()

    def test_missing_staged_raises(self, temp_dir):
        """The staged directory must exist."""
        with pytest.raises(FilesystemError):
            replace_directory(temp_dir / "live", temp_dir / "missing")


class TestExtractArchive:
    """Tests for extract_archive."""

    def test_extracts_tarball(self, temp_dir):
        """A .tar.gz source archive is unpacked."""
        archive = _make_tarball(
            temp_dir / "php-8.3.12.tar.gz", {"php-8.3.12/configure": "#!/bin/sh\n"}
        )
        extract_archive(archive, temp_dir / "out")
        assert (temp_dir / "out" / "php-8.3.12" / "configure").exists()

    def test_rejects_traversal(self, temp_dir):
        """Members escaping the destination are blocked."""
        archive = _make_tarball(temp_dir / "evil.tar.gz", {"../escape": "x"})
        with pytest.raises(InsecureArchiveError):
            extract_archive(archive, temp_dir / "out")
        assert not (temp_dir / "escape").exists()

    def test_unsupported_format(self, temp_dir):
        """Only tar archives are accepted."""
        archive = temp_dir / "php.zip"
        archive.write_bytes(b"PK")
        with pytest.raises(UnsupportedArchiveFormat):
            extract_archive(archive, temp_dir / "out")

    def test_missing_archive(self, temp_dir):
        """A missing archive raises ArchiveExtractionError."""
        with pytest.raises(ArchiveExtractionError):
            extract_archive(temp_dir / "none.tar.gz", temp_dir / "out")


class TestPathHelpers:
    """Tests for remove_path and iter_executables."""

    def test_remove_path_symlink(self, temp_dir):
        """Dangling symlinks are removed too."""
        link = temp_dir / "php"
        os.symlink(temp_dir / "missing", link)
        assert remove_path(link) is True
        assert not link.is_symlink()

    def test_remove_path_missing(self, temp_dir):
        """Removing nothing reports False."""
        assert remove_path(temp_dir / "none") is False

    def test_iter_executables_shallow_first(self, temp_dir):
        """Matches are ordered by depth and must be executable."""
        deep = temp_dir / "a" / "b" / "php"
        shallow = temp_dir / "bin" / "php"
        plain = temp_dir / "c" / "php"
        for path in (deep, shallow, plain):
            path.parent.mkdir(parents=True)
            path.write_text("")
        deep.chmod(0o755)
        shallow.chmod(0o755)
        plain.chmod(0o644)

        assert list(iter_executables(temp_dir, "php")) == [shallow, deep]
