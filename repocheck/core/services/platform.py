"""
Platform detection — who is this host.

Reads os-release and the machine architecture into a PlatformInfo.
Distribution id and major version are mandatory; without them the
run is skipped, not failed. The codename is resolved on Debian-family
hosts only, from VERSION_CODENAME or a static table.
"""

from __future__ import annotations

import logging
import platform as _platform
from pathlib import Path

from repocheck.core.models.platform import PackageManagerKind, PlatformInfo

logger = logging.getLogger(__name__)

# (distro, major version) → codename, for os-release files without VERSION_CODENAME
CODENAMES: dict[tuple[str, int], str] = {
    ("debian", 10): "buster",
    ("debian", 11): "bullseye",
    ("debian", 12): "bookworm",
    ("ubuntu", 18): "bionic",
    ("ubuntu", 20): "focal",
    ("ubuntu", 22): "jammy",
    ("ubuntu", 24): "noble",
}

# Platform keys still on yum; every other EL flavor uses dnf.
_YUM_KEYS = {"rhel7", "centos7", "cloudlinux7", "virtuozzo7"}
_DNF_FAMILIES = {"rhel", "centos", "cloudlinux", "almalinux", "rocky"}
_APT_FAMILIES = {"debian", "ubuntu"}


class DetectionIncomplete(Exception):
    """Distribution id or major version could not be determined."""


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release ``KEY=value`` lines, stripping quotes."""
    fields: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        fields[key.strip()] = value
    return fields


def package_manager_for(os_name: str, major_version: int) -> PackageManagerKind | None:
    if f"{os_name}{major_version}" in _YUM_KEYS:
        return PackageManagerKind.YUM
    if os_name in _DNF_FAMILIES:
        return PackageManagerKind.DNF
    if os_name in _APT_FAMILIES:
        return PackageManagerKind.APT
    return None


def detect_platform(
    os_release_path: Path = Path("/etc/os-release"),
    debian_version_path: Path = Path("/etc/debian_version"),
    machine: str | None = None,
) -> PlatformInfo:
    """Detect the host platform.

    Raises:
        DetectionIncomplete: os-release is missing or lacks ID/VERSION_ID.
    """
    try:
        fields = parse_os_release(os_release_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise DetectionIncomplete(f"cannot read {os_release_path}: {e}") from e

    os_name = fields.get("ID", "").strip().lower()
    version_id = fields.get("VERSION_ID", "").strip()
    major = version_id.split(".", 1)[0]
    if not os_name or not major.isdigit():
        raise DetectionIncomplete(
            f"incomplete os-release: ID={os_name!r} VERSION_ID={version_id!r}"
        )
    major_version = int(major)

    codename = ""
    if debian_version_path.exists():
        codename = fields.get("VERSION_CODENAME", "") or CODENAMES.get((os_name, major_version), "")

    info = PlatformInfo(
        os_name=os_name,
        major_version=major_version,
        architecture=machine or _platform.machine(),
        codename=codename,
        package_manager=package_manager_for(os_name, major_version),
    )
    logger.debug("Detected platform: %s", info.model_dump(mode="json"))
    return info
