"""
Tests for default php.ini and PHP-FPM configuration.
"""

import stat

from phpforge.build.config_files import (
    config_paths,
    extension_ini_path,
    remove_extension_ini,
    render_fpm_pool,
    render_php_ini,
    write_default_configs,
    write_extension_ini,
)


class TestRender:
    """Tests for configuration rendering."""

    def test_php_ini_uses_builtin_extension_dir(self, layout):
        """php.ini leaves extension_dir to the compiled-in default PECL installs to."""
        ini = render_php_ini(layout, "8.3")
        assert "extension_dir" not in ini
        assert "date.timezone = UTC" in ini

    def test_fpm_pool(self, layout, real_user):
        """The pool runs as the invoking user on the line's socket."""
        pool = render_fpm_pool(layout, "8.3", real_user)
        assert "user = alice" in pool
        assert f"listen = {layout.fpm_socket('8.3')}" in pool
        assert "listen.mode = 0660" in pool


class TestWriteDefaultConfigs:
    """Tests for write_default_configs."""

    def test_creates_files(self, layout, real_user):
        """Every configuration file and conf.d/ are created."""
        paths = write_default_configs(layout, "8.3", real_user)

        assert paths.ini_path.exists()
        assert paths.scan_dir.is_dir()
        assert paths.fpm_config.exists()
        assert paths.fpm_pool.exists()
        assert "php-fpm.d" in paths.fpm_config.read_text()

    def test_keeps_existing(self, layout, real_user):
        """A user-edited php.ini survives a rebuild."""
        paths = config_paths(layout, "8.3")
        paths.ini_path.parent.mkdir(parents=True)
        paths.ini_path.write_text("memory_limit = 1G\n")

        write_default_configs(layout, "8.3", real_user)
        assert paths.ini_path.read_text() == "memory_limit = 1G\n"

    def test_paths(self, layout):
        """Configuration lives under etc/php<mm>."""
        paths = config_paths(layout, "8.2")
        assert paths.ini_path == layout.config_path("8.2") / "php.ini"
        assert paths.fpm_socket == layout.fpm_socket("8.2")

    def test_files_world_readable(self, layout, real_user):
        """Configuration is readable by PHP running as any user."""
        paths = write_default_configs(layout, "8.3", real_user)
        for path in (paths.ini_path, paths.fpm_config, paths.fpm_pool):
            assert stat.S_IMODE(path.stat().st_mode) == 0o644


class TestExtensionIni:
    """Tests for conf.d entries of separately installed extensions."""

    def test_write_and_remove(self, layout):
        """An ini loads the module and disappears when removed."""
        path = write_extension_ini(layout, "8.3", "redis")

        assert path == extension_ini_path(layout, "8.3", "redis")
        assert path.parent == config_paths(layout, "8.3").scan_dir
        assert path.read_text() == "extension=redis.so\n"
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

        assert remove_extension_ini(layout, "8.3", "redis") is True
        assert not path.exists()
        assert remove_extension_ini(layout, "8.3", "redis") is False
