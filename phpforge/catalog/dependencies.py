"""
Registry of logical system dependencies.

A logical dependency (for example "libcurl") is a requirement that every
distribution satisfies under a different package name. Each entry lists the
package names per package manager plus the probes used to detect whether the
dependency is already present: pkg-config module names, commands on PATH and
shared library base names.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple


@dataclass(frozen=True)
class DependencyConfig:
    """Static description of one logical dependency."""

    name: str
    packages: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    pkg_config: Tuple[str, ...] = ()
    commands: Tuple[str, ...] = ()
    libraries: Tuple[str, ...] = ()

    def packages_for(self, manager: str) -> List[str]:
        """Package names for `manager`, empty if the manager has none."""
        return list(self.packages.get(manager, ()))


_MANAGER_ORDER = ("apt", "yum", "dnf", "pacman", "zypper", "apk")


def _dep(
    name: str,
    apt,
    yum,
    dnf,
    pacman,
    zypper,
    apk,
    pkg_config=(),
    commands=(),
    libraries=(),
) -> DependencyConfig:
    """Build an entry from per-manager package names in a fixed column order."""
    packages: Dict[str, Tuple[str, ...]] = {}
    for manager, names in zip(_MANAGER_ORDER, (apt, yum, dnf, pacman, zypper, apk)):
        if isinstance(names, str):
            names = names.split()
        packages[manager] = tuple(names)
    return DependencyConfig(
        name=name,
        packages=MappingProxyType(packages),
        pkg_config=tuple(pkg_config),
        commands=tuple(commands),
        libraries=tuple(libraries),
    )


_DEFINITIONS = [
    # Build prerequisites
    _dep(
        "buildtools",
        "build-essential",
        "gcc gcc-c++ make",
        "gcc gcc-c++ make",
        "base-devel",
        "gcc gcc-c++ make",
        "build-base",
        commands=["gcc", "make"],
    ),
    _dep(
        "autoconf",
        "autoconf",
        "autoconf",
        "autoconf",
        "autoconf",
        "autoconf",
        "autoconf",
        commands=["autoconf"],
    ),
    _dep(
        "pkgconfig",
        "pkg-config",
        "pkgconfig",
        "pkgconf",
        "pkgconf",
        "pkg-config",
        "pkgconf",
        commands=["pkg-config"],
    ),
    _dep("re2c", "re2c", "re2c", "re2c", "re2c", "re2c", "re2c", commands=["re2c"]),
    _dep(
        "oniguruma",
        "libonig-dev",
        "oniguruma-devel",
        "oniguruma-devel",
        "oniguruma",
        "libonig-devel",
        "oniguruma-dev",
        pkg_config=["oniguruma"],
        libraries=["libonig"],
    ),
    _dep(
        "libxml2",
        "libxml2-dev",
        "libxml2-devel",
        "libxml2-devel",
        "libxml2",
        "libxml2-devel",
        "libxml2-dev",
        pkg_config=["libxml-2.0"],
        libraries=["libxml2"],
    ),
    _dep(
        "sqlite",
        "libsqlite3-dev",
        "sqlite-devel",
        "sqlite-devel",
        "sqlite",
        "sqlite3-devel",
        "sqlite-dev",
        pkg_config=["sqlite3"],
        commands=["sqlite3"],
        libraries=["libsqlite3"],
    ),
    # Extension dependencies
    _dep(
        "libcurl",
        "libcurl4-openssl-dev",
        "libcurl-devel",
        "libcurl-devel",
        "curl",
        "libcurl-devel",
        "curl-dev",
        pkg_config=["libcurl"],
        libraries=["libcurl"],
    ),
    _dep(
        "openssl",
        "libssl-dev",
        "openssl-devel",
        "openssl-devel",
        "openssl",
        "libopenssl-devel",
        "openssl-dev",
        pkg_config=["openssl"],
        libraries=["libssl"],
    ),
    _dep(
        "libzip",
        "libzip-dev",
        "libzip-devel",
        "libzip-devel",
        "libzip",
        "libzip-devel",
        "libzip-dev",
        pkg_config=["libzip"],
        libraries=["libzip"],
    ),
    _dep(
        "libgd",
        "libgd-dev",
        "gd-devel",
        "gd-devel",
        "gd",
        "gd-devel",
        "gd-dev",
        pkg_config=["gdlib"],
        libraries=["libgd"],
    ),
    _dep(
        "mysql",
        "libmysqlclient-dev",
        "mysql-devel",
        "mysql-devel",
        "mariadb-libs",
        "libmysqlclient-devel",
        "mysql-dev",
        commands=["mysql_config"],
        libraries=["libmysqlclient", "libmariadb"],
    ),
    _dep(
        "libjpeg",
        "libjpeg-dev",
        "libjpeg-turbo-devel",
        "libjpeg-turbo-devel",
        "libjpeg-turbo",
        "libjpeg8-devel",
        "libjpeg-turbo-dev",
        pkg_config=["libjpeg"],
        libraries=["libjpeg"],
    ),
    _dep(
        "freetype2",
        "libfreetype6-dev",
        "freetype-devel",
        "freetype-devel",
        "freetype2",
        "freetype2-devel",
        "freetype-dev",
        pkg_config=["freetype2"],
        libraries=["libfreetype"],
    ),
    _dep(
        "pcre2",
        "libpcre2-dev",
        "pcre2-devel",
        "pcre2-devel",
        "pcre2",
        "pcre2-devel",
        "pcre2-dev",
        pkg_config=["libpcre2-8"],
        libraries=["libpcre2-8"],
    ),
    _dep(
        "zlib",
        "zlib1g-dev",
        "zlib-devel",
        "zlib-devel",
        "zlib",
        "zlib-devel",
        "zlib-dev",
        pkg_config=["zlib"],
        libraries=["libz"],
    ),
    _dep(
        "bzip2",
        "libbz2-dev",
        "bzip2-devel",
        "bzip2-devel",
        "bzip2",
        "libbz2-devel",
        "bzip2-dev",
        libraries=["libbz2"],
    ),
    _dep(
        "icu",
        "libicu-dev",
        "libicu-devel",
        "libicu-devel",
        "icu",
        "libicu-devel",
        "icu-dev",
        pkg_config=["icu-uc", "icu-io"],
        libraries=["libicuuc"],
    ),
    _dep(
        "postgresql",
        "libpq-dev",
        "postgresql-devel",
        "postgresql-devel",
        "postgresql-libs",
        "postgresql-devel",
        "postgresql-dev",
        pkg_config=["libpq"],
        commands=["pg_config"],
        libraries=["libpq"],
    ),
    _dep(
        "gettext",
        "gettext",
        "gettext-devel",
        "gettext-devel",
        "gettext",
        "gettext-tools",
        "gettext-dev",
        commands=["gettext"],
        libraries=["libintl"],
    ),
    _dep(
        "gmp",
        "libgmp-dev",
        "gmp-devel",
        "gmp-devel",
        "gmp",
        "gmp-devel",
        "gmp-dev",
        libraries=["libgmp"],
    ),
    _dep(
        "ldap",
        "libldap2-dev",
        "openldap-devel",
        "openldap-devel",
        "libldap",
        "openldap2-devel",
        "openldap-dev",
        commands=["ldapsearch"],
        libraries=["libldap"],
    ),
    _dep(
        "imap",
        "libc-client-dev libkrb5-dev",
        "libc-client-devel",
        "libc-client-devel",
        "c-client",
        "imap-devel",
        "imap-dev",
        libraries=["libc-client"],
    ),
    _dep(
        "imagemagick",
        "libmagickwand-dev",
        "ImageMagick-devel",
        "ImageMagick-devel",
        "imagemagick",
        "ImageMagick-devel",
        "imagemagick-dev",
        pkg_config=["MagickWand"],
        commands=["convert"],
    ),
]

DEPENDENCIES: Mapping[str, DependencyConfig] = MappingProxyType(
    {definition.name: definition for definition in _DEFINITIONS}
)

# Needed by every build regardless of the extension set
BUILD_DEPENDENCIES: Tuple[str, ...] = (
    "buildtools",
    "autoconf",
    "pkgconfig",
    "re2c",
    "oniguruma",
    "libxml2",
    "sqlite",
)
