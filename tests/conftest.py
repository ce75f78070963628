"""
Pytest configuration and shared fixtures for phpforge tests.
"""

import os
import stat
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from phpforge.config.parser import Settings
from phpforge.core.directory import Layout
from phpforge.core.process import RealUser
from phpforge.core.state import StateStore


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that build PHP or require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if config.getoption("--integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires --integration)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_home(tmp_path, monkeypatch) -> Path:
    """Point HOME at a temporary directory and clear phpforge environment."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in ("SUDO_USER", "PHPFORGE_CONFIG", "PHPFORGE_BASE_DIR"):
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings rooted entirely inside the test's temporary directory."""
    return Settings(
        base_dir=tmp_path / "opt" / "phpforge",
        system_bin_dir=tmp_path / "usr" / "local" / "bin",
        build_dir=tmp_path / "build",
    )


@pytest.fixture
def layout(settings, isolated_home) -> Layout:
    """Layout with every managed directory created."""
    layout = Layout.from_settings(settings)
    for directory in layout.managed_directories():
        directory.mkdir(parents=True, exist_ok=True)
    layout.system_bin_dir.mkdir(parents=True, exist_ok=True)
    layout.build_dir.mkdir(parents=True, exist_ok=True)
    return layout


@pytest.fixture
def store(layout) -> StateStore:
    """Empty state store in the layout's config directory."""
    return StateStore(layout.state_file)


@pytest.fixture
def real_user(isolated_home) -> RealUser:
    """A non-root invoking user."""
    return RealUser(
        name="alice", uid=os.getuid(), gid=os.getgid(), group="alice", home=isolated_home
    )


@pytest.fixture
def make_php_binary():
    """
    Factory writing a shell script that behaves like `php -v`.

    Usage:
        binary = make_php_binary(prefix / "bin" / "php", "8.3.12")
    """

    def _make(path: Path, version: str, exit_code: int = 0) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            "#!/bin/sh\n"
            f'echo "PHP {version} (cli) (built: Oct 18 2026 10:00:00) (NTS)"\n'
            f"exit {exit_code}\n"
        )
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make
