"""
Repository policy registry — which checks run on which platform.

A static table keyed by platform key. Lookup tries the exact key
(``{distro}{major}``, e.g. ``centos7``) first, then the family key
(``{distro}``, e.g. ``ubuntu``). A platform matching neither has no
policy and nothing is checked.

Policies are data: an ordered tuple of named checks. A *gate* check
that comes back fatal stops the remaining checks of its policy;
*install_only* checks are skipped outside install mode.
"""

from __future__ import annotations

from dataclasses import dataclass

from repocheck.core.models.platform import PlatformInfo
from repocheck.core.services.checks import (
    CheckFn,
    RepoVariant,
    check_broken_repos,
    check_config_manager,
    check_epel,
    check_unsupported_repos_debian,
    check_unsupported_repos_ubuntu,
    disable_backports,
    migrate_eol_mirrors,
    require_apt_repo,
    require_one_of,
)


@dataclass(frozen=True)
class PolicyCheck:
    name: str
    run: CheckFn
    gate: bool = False
    install_only: bool = False


@dataclass(frozen=True)
class PolicyEntry:
    key: str
    checks: tuple[PolicyCheck, ...]

    @property
    def check_names(self) -> list[str]:
        return [c.name for c in self.checks]


# ── Reusable checks ─────────────────────────────────────────────

CONFIG_MANAGER = PolicyCheck("config-manager", check_config_manager, gate=True)
EPEL = PolicyCheck("epel", check_epel)
BROKEN_REPOS = PolicyCheck("broken-repos", check_broken_repos)

CODEREADY = PolicyCheck("codeready", require_one_of([
    RepoVariant("codeready-builder-for-rhel-{version}-{arch}-rpms", via="subscription"),
    RepoVariant("codeready-builder-for-rhel-{version}-rhui-rpms"),
    RepoVariant("codeready-builder-for-rhel-{version}-{arch}-rhui-rpms"),
    RepoVariant("rhui-codeready-builder-for-rhel-{version}-{arch}-rhui-rpms"),
]))

RHEL_OPTIONAL = PolicyCheck("optional", require_one_of([
    RepoVariant("rhel-{version}-server-optional-rpms", via="subscription"),
    RepoVariant("rhel-{version}-server-rhui-optional-rpms"),
]))

# Repo names were lowercased in CentOS 8.3
POWERTOOLS = PolicyCheck("powertools", require_one_of([
    RepoVariant("powertools"),
    RepoVariant("PowerTools"),
]))

# ...and renamed in CloudLinux 8.5
POWERTOOLS_CLOUDLINUX = PolicyCheck("powertools", require_one_of([
    RepoVariant("powertools"),
    RepoVariant("cloudlinux-PowerTools"),
]))

# PowerTools became CRB in AlmaLinux 9
CRB = PolicyCheck("crb", require_one_of([RepoVariant("crb")]))

CENTOS_VAULT = PolicyCheck("eol-mirror-migration", migrate_eol_mirrors(
    old_host="mirror.centos.org",
    new_host="vault.centos.org",
    old_mirrorlist_host="mirrorlist.centos.org",
    file_glob="CentOS-*.repo",
))

UNSUPPORTED_UBUNTU = PolicyCheck("unsupported-repos", check_unsupported_repos_ubuntu)
UNSUPPORTED_DEBIAN = PolicyCheck("unsupported-repos", check_unsupported_repos_debian)
BACKPORTS = PolicyCheck("disable-backports", disable_backports)


def _apt_required(label: str, suffix: str, component: str) -> PolicyCheck:
    return PolicyCheck(
        f"require {label}/<codename>{suffix}/{component}",
        require_apt_repo(label, suffix, component),
    )


_EL7 = (CONFIG_MANAGER, EPEL, BROKEN_REPOS)
_EL8 = (CONFIG_MANAGER, EPEL, BROKEN_REPOS, POWERTOOLS)


def _entries(*entries: PolicyEntry) -> dict[str, PolicyEntry]:
    return {e.key: e for e in entries}


POLICIES: dict[str, PolicyEntry] = _entries(
    PolicyEntry("rhel7", (CONFIG_MANAGER, EPEL, RHEL_OPTIONAL, BROKEN_REPOS)),
    PolicyEntry("centos7", (CENTOS_VAULT,) + _EL7),
    PolicyEntry("cloudlinux7", _EL7),
    PolicyEntry("virtuozzo7", _EL7),
    PolicyEntry("rhel8", (
        CONFIG_MANAGER, EPEL, BROKEN_REPOS,
        PolicyCheck("codeready", CODEREADY.run, install_only=True),
    )),
    PolicyEntry("centos8", _EL8),
    PolicyEntry("almalinux8", _EL8),
    PolicyEntry("rocky8", _EL8),
    PolicyEntry("cloudlinux8", (CONFIG_MANAGER, EPEL, BROKEN_REPOS, POWERTOOLS_CLOUDLINUX)),
    PolicyEntry("rhel9", (CONFIG_MANAGER, EPEL, CODEREADY, BROKEN_REPOS)),
    PolicyEntry("almalinux9", (CONFIG_MANAGER, EPEL, BROKEN_REPOS, CRB)),
    PolicyEntry("ubuntu18", (
        _apt_required("Ubuntu", "", "main"),
        _apt_required("Ubuntu", "", "universe"),
        _apt_required("Ubuntu", "-updates", "main"),
        _apt_required("Ubuntu", "-updates", "universe"),
        UNSUPPORTED_UBUNTU,
    )),
    PolicyEntry("ubuntu", (
        _apt_required("Ubuntu", "", "main"),
        _apt_required("Ubuntu", "", "universe"),
        UNSUPPORTED_UBUNTU,
    )),
    PolicyEntry("debian", (
        BACKPORTS,
        _apt_required("Debian", "", "main"),
        UNSUPPORTED_DEBIAN,
    )),
)


def lookup_policy(
    platform: PlatformInfo,
    policies: dict[str, PolicyEntry] | None = None,
) -> PolicyEntry | None:
    """Policy for *platform*: exact key first, then the family key."""
    table = POLICIES if policies is None else policies
    return table.get(platform.key) or table.get(platform.family_key)


def lookup_policy_key(
    key: str,
    policies: dict[str, PolicyEntry] | None = None,
) -> PolicyEntry | None:
    """Same lookup from a bare key such as ``ubuntu22`` or ``debian``."""
    table = POLICIES if policies is None else policies
    return table.get(key) or table.get(key.rstrip("0123456789"))
