"""
Tests for the extension catalog.
"""

import pytest

from phpforge.catalog.dependencies import DEPENDENCIES
from phpforge.catalog.extensions import (
    DEFAULT_EXTENSIONS,
    EXTENSIONS,
    get_configure_flags,
    get_extension,
    is_known_extension,
    separately_installed,
    sort_extensions,
    suggest_similar,
    validate_extensions,
)


class TestCatalog:
    """Tests for catalog contents."""

    def test_defaults_are_known(self):
        """Every default extension is in the catalog."""
        assert all(name in EXTENSIONS for name in DEFAULT_EXTENSIONS)

    def test_dependencies_are_registered(self):
        """Every dependency named by an extension exists in the registry."""
        for definition in EXTENSIONS.values():
            for dependency in definition.dependencies:
                assert dependency in DEPENDENCIES, (definition.name, dependency)

    def test_catalog_is_read_only(self):
        """The catalog cannot be modified at runtime."""
        with pytest.raises(TypeError):
            EXTENSIONS["custom"] = EXTENSIONS["curl"]

    def test_get_extension_normalizes(self):
        """Lookups ignore case and whitespace."""
        assert get_extension(" CURL ").configure_flag == "--with-curl"
        assert is_known_extension("Intl")
        assert not is_known_extension("cobol")

    def test_alternate_install_has_no_flag(self):
        """PECL-style extensions carry dependencies but no configure flag."""
        imagick = get_extension("imagick")
        assert imagick.alternate_install
        assert not imagick.has_configure_flag
        assert imagick.dependencies == ("imagemagick",)

    def test_separately_installed(self):
        """Only PECL-style names are selected, in catalog order."""
        assert separately_installed(["redis", "curl", "imagick", "nope"]) == [
            "imagick",
            "redis",
        ]


class TestConfigureFlags:
    """Tests for get_configure_flags."""

    def test_catalog_order(self):
        """Flags follow catalog order regardless of request order."""
        assert get_configure_flags(["zip", "curl", "mbstring"]) == [
            "--enable-mbstring",
            "--with-curl",
            "--with-zip",
        ]

    def test_skips_flagless_and_unknown(self):
        """Alternate installs and unknown names contribute nothing."""
        assert get_configure_flags(["redis", "imagick", "cobol", "intl"]) == [
            "--enable-intl"
        ]

    def test_no_duplicates(self):
        """Repeated names produce one flag."""
        assert get_configure_flags(["curl", "CURL", "curl"]) == ["--with-curl"]


class TestValidation:
    """Tests for validate_extensions and sort_extensions."""

    def test_split_valid_invalid(self):
        """Names are normalized and split into known and unknown."""
        valid, invalid = validate_extensions(["Curl", "intl", "fooext", "curl", " "])
        assert valid == ["curl", "intl"]
        assert invalid == ["fooext"]

    def test_sort_extensions(self):
        """Sorting deduplicates and puts unknown names last."""
        assert sort_extensions(["zip", "zzz", "curl", "zip"]) == ["curl", "zip", "zzz"]


class TestSuggestions:
    """Tests for suggest_similar."""

    def test_substring_match(self):
        """A partial name suggests extensions containing it."""
        assert "pdo-mysql" in suggest_similar("pdo")

    def test_close_spelling(self):
        """A typo suggests the intended extension."""
        assert suggest_similar("mbstrng")[0] == "mbstring"

    def test_limit(self):
        """At most `limit` suggestions are returned."""
        assert len(suggest_similar("p", limit=2)) <= 2

    def test_empty(self):
        """Blank input suggests nothing."""
        assert suggest_similar("  ") == []
