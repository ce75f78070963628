"""
System package manager profiles.

Each profile records how to install packages and how to ask whether a single
package is installed. Profiles are listed in detection order.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Tuple


@dataclass(frozen=True)
class PackageManagerProfile:
    """Install and query dialect of one package manager."""

    name: str
    command: str
    install_args: Tuple[str, ...]
    query_command: str
    query_args: Tuple[str, ...]

    def install_command(self, packages: List[str]) -> List[str]:
        """Full argv installing all `packages` in one invocation."""
        return [self.command, *self.install_args, *packages]

    def query_command_for(self, package: str) -> List[str]:
        """Full argv that exits 0 when `package` is installed."""
        return [self.query_command, *self.query_args, package]


PACKAGE_MANAGERS: Mapping[str, PackageManagerProfile] = MappingProxyType(
    {
        "apt": PackageManagerProfile(
            "apt", "apt-get", ("install", "-y"), "dpkg", ("-s",)
        ),
        "dnf": PackageManagerProfile("dnf", "dnf", ("install", "-y"), "rpm", ("-q",)),
        "yum": PackageManagerProfile("yum", "yum", ("install", "-y"), "rpm", ("-q",)),
        "pacman": PackageManagerProfile(
            "pacman", "pacman", ("-S", "--noconfirm", "--needed"), "pacman", ("-Q",)
        ),
        "zypper": PackageManagerProfile(
            "zypper", "zypper", ("install", "-y"), "rpm", ("-q",)
        ),
        "apk": PackageManagerProfile("apk", "apk", ("add",), "apk", ("info", "-e")),
    }
)
