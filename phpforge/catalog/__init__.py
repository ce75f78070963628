"""
Static catalogs: extensions, system dependencies and package manager profiles.

All tables are read-only mappings built once at import time.
"""

from phpforge.catalog.dependencies import (
    BUILD_DEPENDENCIES,
    DEPENDENCIES,
    DependencyConfig,
)
from phpforge.catalog.extensions import (
    DEFAULT_EXTENSIONS,
    EXTENSIONS,
    ExtensionDefinition,
    get_configure_flags,
    get_extension,
    is_known_extension,
    separately_installed,
    sort_extensions,
    suggest_similar,
    validate_extensions,
)
from phpforge.catalog.package_managers import PACKAGE_MANAGERS, PackageManagerProfile

__all__ = [
    "BUILD_DEPENDENCIES",
    "DEPENDENCIES",
    "DependencyConfig",
    "DEFAULT_EXTENSIONS",
    "EXTENSIONS",
    "ExtensionDefinition",
    "get_configure_flags",
    "get_extension",
    "is_known_extension",
    "separately_installed",
    "sort_extensions",
    "suggest_similar",
    "validate_extensions",
    "PACKAGE_MANAGERS",
    "PackageManagerProfile",
]
