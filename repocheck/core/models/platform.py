"""
Platform model — the detected identity of the host.

Computed once per run by the platform detector and never mutated.
The policy registry and backend selection key off it.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

# uname machine → Debian package architecture
ARCH_MAP = {"x86_64": "amd64", "aarch64": "arm64"}


class PackageManagerKind(str, Enum):
    """Backend family selected at detection time."""

    YUM = "yum"
    DNF = "dnf"
    APT = "apt"


class PlatformInfo(BaseModel):
    """Normalized host identity."""

    model_config = ConfigDict(frozen=True)

    os_name: str                    # os-release ID, e.g. "almalinux"
    major_version: int              # VERSION_ID up to the first dot
    architecture: str               # uname -m, e.g. "x86_64"
    codename: str = ""              # empty when unresolved
    package_manager: PackageManagerKind | None = None

    @property
    def package_arch(self) -> str:
        """Architecture as the package manager names it (unknown passes through)."""
        return ARCH_MAP.get(self.architecture, self.architecture)

    @property
    def key(self) -> str:
        """Exact policy key, e.g. ``centos7``."""
        return f"{self.os_name}{self.major_version}"

    @property
    def family_key(self) -> str:
        """Family-level fallback policy key, e.g. ``ubuntu``."""
        return self.os_name
