"""
Catalog of PHP extensions phpforge knows how to enable.

Each entry maps an extension name to the `configure` flag that enables it and
to the logical system dependencies (keys of the dependency registry) it needs.
Extensions marked `alternate_install` are not enabled through `configure`;
they are PECL modules installed after the build, and contribute their
dependencies but no flag.
"""

import difflib
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, List, Mapping, Tuple


@dataclass(frozen=True)
class ExtensionDefinition:
    """Static description of one extension."""

    name: str
    configure_flag: str = ""
    dependencies: Tuple[str, ...] = ()
    alternate_install: bool = False

    @property
    def has_configure_flag(self) -> bool:
        return bool(self.configure_flag) and not self.alternate_install


def _ext(name, flag="", deps=(), alternate=False) -> ExtensionDefinition:
    return ExtensionDefinition(name, flag, tuple(deps), alternate)


# Order matters: configure flags are emitted in this order.
_DEFINITIONS = [
    _ext("mbstring", "--enable-mbstring"),
    _ext("bcmath", "--enable-bcmath"),
    _ext("opcache", "--enable-opcache"),
    _ext("curl", "--with-curl", ["libcurl"]),
    _ext("openssl", "--with-openssl", ["openssl"]),
    _ext("zip", "--with-zip", ["libzip"]),
    _ext("sockets", "--enable-sockets"),
    _ext("mysqli", "--with-mysqli", ["mysql"]),
    _ext("pdo-mysql", "--with-pdo-mysql", ["mysql"]),
    _ext("gd", "--enable-gd", ["libgd"]),
    _ext("jpeg", "--with-jpeg", ["libjpeg"]),
    _ext("freetype", "--with-freetype", ["freetype2"]),
    _ext("xml", "--enable-xml"),
    _ext("json", "--enable-json"),
    _ext("session", "--enable-session"),
    _ext("hash", "--enable-hash"),
    _ext("filter", "--enable-filter"),
    _ext("pcre", "--with-pcre-jit", ["pcre2"]),
    _ext("zlib", "--with-zlib", ["zlib"]),
    _ext("bz2", "--with-bz2", ["bzip2"]),
    _ext("iconv", "--with-iconv"),
    _ext("intl", "--enable-intl", ["icu"]),
    _ext("pgsql", "--with-pgsql", ["postgresql"]),
    _ext("pdo-pgsql", "--with-pdo-pgsql", ["postgresql"]),
    _ext("sqlite3", "--with-sqlite3", ["sqlite"]),
    _ext("pdo-sqlite", "--with-pdo-sqlite", ["sqlite"]),
    _ext("fileinfo", "--enable-fileinfo"),
    _ext("exif", "--enable-exif"),
    _ext("gettext", "--with-gettext", ["gettext"]),
    _ext("gmp", "--with-gmp", ["gmp"]),
    _ext("ldap", "--with-ldap", ["ldap"]),
    _ext("soap", "--enable-soap"),
    _ext("ftp", "--enable-ftp"),
    _ext("pcntl", "--enable-pcntl"),
    _ext("imap", "--with-imap", ["imap"]),
    _ext("imagick", "", ["imagemagick"], alternate=True),
    _ext("redis", "", [], alternate=True),
]

EXTENSIONS: Mapping[str, ExtensionDefinition] = MappingProxyType(
    {definition.name: definition for definition in _DEFINITIONS}
)

DEFAULT_EXTENSIONS: Tuple[str, ...] = (
    "mbstring",
    "curl",
    "openssl",
    "fileinfo",
    "filter",
    "hash",
    "pcre",
    "session",
    "xml",
    "zip",
    "mysqli",
    "sqlite3",
    "pdo-mysql",
    "sockets",
    "zlib",
)


def get_extension(name: str) -> ExtensionDefinition:
    """
    Look up an extension by name.

    Raises:
        KeyError: If the extension is unknown
    """
    return EXTENSIONS[name.strip().lower()]


def is_known_extension(name: str) -> bool:
    return name.strip().lower() in EXTENSIONS


def validate_extensions(names: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Split requested names into known and unknown extensions.

    Names are normalized to lowercase and duplicates are dropped while
    keeping the first occurrence.

    Returns:
        (valid, invalid) lists
    """
    valid: List[str] = []
    invalid: List[str] = []
    for raw in names:
        name = raw.strip().lower()
        if not name:
            continue
        bucket = valid if is_known_extension(name) else invalid
        if name not in bucket:
            bucket.append(name)
    return valid, invalid


def suggest_similar(name: str, limit: int = 3) -> List[str]:
    """
    Suggest catalog names that look like a mistyped extension name.

    Substring matches come first, then close spellings.
    """
    needle = name.strip().lower()
    if not needle:
        return []

    substring = [
        candidate
        for candidate in EXTENSIONS
        if needle in candidate or candidate in needle
    ]
    close = difflib.get_close_matches(needle, list(EXTENSIONS), n=limit, cutoff=0.6)

    suggestions: List[str] = []
    for candidate in substring + close:
        if candidate not in suggestions and candidate != needle:
            suggestions.append(candidate)
    return suggestions[:limit]


def sort_extensions(names: Iterable[str]) -> List[str]:
    """Return names deduplicated and sorted by catalog order (unknown names last)."""
    order = {name: index for index, name in enumerate(EXTENSIONS)}
    unique = set(n.strip().lower() for n in names if n.strip())
    return sorted(unique, key=lambda n: (order.get(n, len(order)), n))


def get_configure_flags(names: Iterable[str]) -> List[str]:
    """
    Return configure flags for the given extensions in catalog order.

    Unknown extensions and those installed through another mechanism
    contribute nothing.
    """
    flags: List[str] = []
    for name in sort_extensions(names):
        definition = EXTENSIONS.get(name)
        if definition and definition.has_configure_flag:
            flags.append(definition.configure_flag)
    return flags


def separately_installed(names: Iterable[str]) -> List[str]:
    """Known extensions among `names` that configure cannot enable, in catalog order."""
    return [
        name
        for name in sort_extensions(names)
        if is_known_extension(name) and get_extension(name).alternate_install
    ]
