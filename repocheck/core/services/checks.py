"""
Policy checks — one unit of "this repository state must hold".

A check takes a :class:`CheckContext` and returns a list of
:class:`CheckOutcome` (empty means nothing to report). Checks remediate
what they can before judging, and are safe to run again: enabling an
enabled repo or re-running a scan changes nothing.

Checks that need an RPM or APT specific operation are only registered
for platforms whose backend has it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Literal

from repocheck.adapters.base import (
    AdapterUnavailable,
    AptFamilyAdapter,
    PackageManagerAdapter,
    RpmFamilyAdapter,
)
from repocheck.core.config.loader import Settings
from repocheck.core.models.outcome import CheckOutcome, ErrorKind, RunMode
from repocheck.core.models.platform import PlatformInfo
from repocheck.core.models.repository import AptRepo, AptRepoPattern, RpmRepo

logger = logging.getLogger(__name__)

EPEL = RpmRepo(id="epel")
EPEL_PACKAGE = "epel-release"
_EPEL_EXTRA_RE = re.compile(r"^epel\S+$")


@dataclass(frozen=True)
class CheckContext:
    """What a check may look at and act upon."""

    platform: PlatformInfo
    adapter: PackageManagerAdapter
    mode: RunMode = RunMode.CHECK
    settings: Settings = field(default_factory=Settings)

    @property
    def install_mode(self) -> bool:
        return self.mode is RunMode.INSTALL

    @property
    def rpm(self) -> RpmFamilyAdapter:
        if not isinstance(self.adapter, RpmFamilyAdapter):
            raise TypeError(f"{self.adapter.name} is not a yum/dnf adapter")
        return self.adapter

    @property
    def apt(self) -> AptFamilyAdapter:
        if not isinstance(self.adapter, AptFamilyAdapter):
            raise TypeError(f"{self.adapter.name} is not an apt adapter")
        return self.adapter


CheckFn = Callable[[CheckContext], list[CheckOutcome]]


# ── RPM family ──────────────────────────────────────────────────


def check_config_manager(ctx: CheckContext) -> list[CheckOutcome]:
    """The repo-toggling helper must exist; install it if missing."""
    if ctx.adapter.has_config_manager():
        return []

    result = ctx.adapter.install_config_manager()
    if ctx.adapter.has_config_manager():
        return [CheckOutcome.ok(detail="config manager installed")]

    return [CheckOutcome.fatal(ErrorKind.CONFIG_MANAGER_MISSING, detail=result.describe())]


def check_epel(ctx: CheckContext) -> list[CheckOutcome]:
    """EPEL must be enabled, installing ``epel-release`` if needed.

    Provider sources, in order: the OS mirrors, the vendor thirdparty
    mirror, the upstream latest-release RPM. A successful install is
    followed by an update so the package tracks upstream.
    """
    adapter = ctx.rpm
    if adapter.enable_repo(EPEL):
        return []

    settings = ctx.settings
    vendor = [settings.vendor_repo_glob] if settings.vendor_repo_glob else []
    sources = [
        ("OS mirrors", EPEL_PACKAGE, {"disable_repos": vendor}),
        (
            "vendor thirdparty mirror",
            EPEL_PACKAGE,
            {
                "disable_repos": ["*"],
                "enable_repos": [settings.vendor_thirdparty_repo_glob],
                "skip_unavailable": False,
            },
        ),
        (
            "upstream release",
            settings.epel_release_url.format(version=ctx.platform.major_version),
            {"skip_unavailable": False},
        ),
    ]

    notes: list[str] = []
    installed_from = None
    for label, package, opts in sources:
        result = adapter.install_package(package, **opts)
        if result.ok:
            installed_from = label
            break
        logger.info("epel-release from %s: %s", label, result.describe())
        notes.append(f"{label}: {result.describe()}")

    if installed_from:
        update = adapter.update_package(EPEL_PACKAGE)
        if not update.ok:
            logger.info("epel-release update: %s", update.describe())

    # Other EPEL repos (e.g. epel-cisco-openh264) need a cache too,
    # or the broken-repository scan flags them.
    try:
        extra = sorted(
            (r for r in adapter.list_enabled_repos() if _EPEL_EXTRA_RE.match(r.id)),
            key=str,
        )
    except AdapterUnavailable as e:
        logger.info("Cannot list EPEL repos: %s", e)
        extra = []
    for repo in extra:
        refreshed = adapter.make_cache(repo)
        if not refreshed.ok:
            logger.info("makecache %s: %s", repo, refreshed.describe())

    if adapter.is_repo_enabled(EPEL):
        return [CheckOutcome.ok(detail=f"epel-release installed from {installed_from}")]

    return [CheckOutcome.fatal(ErrorKind.REPO_NOT_ENABLED, repo=EPEL.id, detail="; ".join(notes))]


@dataclass(frozen=True)
class RepoVariant:
    """One spelling of a repository, with the way to enable it.

    ``template`` may use ``{version}`` and ``{arch}``.
    """

    template: str
    via: Literal["config-manager", "subscription"] = "config-manager"

    def ref(self, platform: PlatformInfo) -> RpmRepo:
        return RpmRepo(id=self.template.format(
            version=platform.major_version,
            arch=platform.architecture,
        ))


def require_one_of(variants: list[RepoVariant]) -> CheckFn:
    """Check enabling the first variant that works; fatal if none does.

    The first variant is the name reported to the operator.
    """

    def check(ctx: CheckContext) -> list[CheckOutcome]:
        for variant in variants:
            ref = variant.ref(ctx.platform)
            if variant.via == "subscription":
                enabled = ctx.rpm.enable_subscription_repo(ref)
            else:
                enabled = ctx.adapter.enable_repo(ref)
            if enabled:
                return []
            logger.debug("Variant %s could not be enabled", ref)

        reported = variants[0].ref(ctx.platform)
        return [CheckOutcome.fatal(ErrorKind.REPO_NOT_ENABLED, repo=reported.id)]

    return check


def check_broken_repos(ctx: CheckContext) -> list[CheckOutcome]:
    """Every enabled repository must also be cached."""
    enabled = ctx.adapter.list_enabled_repos()
    available = ctx.adapter.list_available_repos()
    return [
        CheckOutcome.warn(ErrorKind.REPO_NOT_CACHED, repo=str(repo))
        for repo in sorted(enabled - available, key=str)
    ]


def migrate_eol_mirrors(
    old_host: str,
    new_host: str,
    old_mirrorlist_host: str | None = None,
    file_glob: str = "*.repo",
) -> CheckFn:
    """Best-effort switch of repo files from a retired mirror host.

    Never produces a problem outcome; errors are logged and attached
    as a note.
    """

    def check(ctx: CheckContext) -> list[CheckOutcome]:
        outcome = ctx.rpm.rewrite_mirror_urls(
            old_host, new_host, old_mirrorlist_host, file_glob,
        )
        for error in outcome.errors:
            logger.warning("Mirror migration: %s", error)

        if outcome.changed:
            logger.warning(
                "%s package manager repositories were backed up to '%s' and switched from %s to %s .",
                ctx.adapter.name.upper(), outcome.backup_dir, old_host, new_host,
            )
            return [CheckOutcome.ok(detail=f"switched {len(outcome.changed_files)} file(s) to {new_host}")]
        if outcome.errors:
            return [CheckOutcome.ok(detail="; ".join(outcome.errors))]
        return []

    return check


# ── APT family ──────────────────────────────────────────────────


def require_apt_repo(label: str, suite_suffix: str, component: str) -> CheckFn:
    """Check that ``label/<codename><suffix>/component`` is known to apt."""

    def check(ctx: CheckContext) -> list[CheckOutcome]:
        codename = ctx.platform.codename
        if not codename:
            return []
        suite = f"{codename}{suite_suffix}"
        if ctx.apt.find_matching_repos(AptRepoPattern.exact(label, suite, component)):
            return []
        return [CheckOutcome.fatal(ErrorKind.REPO_NOT_ENABLED, repo=f"{label}/{suite}/{component}")]

    return check


def _unsupported(ctx: CheckContext, repos: list[AptRepo]) -> list[CheckOutcome]:
    factory = CheckOutcome.fatal if ctx.install_mode else CheckOutcome.warn
    seen: set[AptRepo] = set()
    outcomes = []
    for repo in repos:
        if repo in seen:
            continue
        seen.add(repo)
        outcomes.append(factory(ErrorKind.REPO_NOT_SUPPORTED, repo=str(repo)))
    return outcomes


def check_unsupported_repos_ubuntu(ctx: CheckContext) -> list[CheckOutcome]:
    """Ubuntu hosts may only use their own release and no Debian archives."""
    codename = ctx.platform.codename
    if not codename:
        return []
    find = ctx.apt.find_matching_repos
    repos = [r for r in find(AptRepoPattern(label="Ubuntu")) if not r.suite.startswith(codename)]
    repos += find(AptRepoPattern(label="Debian.*"))
    return _unsupported(ctx, repos)


def check_unsupported_repos_debian(ctx: CheckContext) -> list[CheckOutcome]:
    """Debian hosts may only use their own release, without backports or Ubuntu."""
    codename = ctx.platform.codename
    if not codename:
        return []
    find = ctx.apt.find_matching_repos
    repos = find(AptRepoPattern.exact("Debian Backports", f"{codename}-backports"))
    repos += [r for r in find(AptRepoPattern(label="Debian.*")) if not r.suite.startswith(codename)]
    repos += find(AptRepoPattern(label="Ubuntu"))
    return _unsupported(ctx, repos)


def disable_backports(ctx: CheckContext) -> list[CheckOutcome]:
    """Turn the backports suite off before judging the sources.

    Debian 12+ may ship deb822 sources, which only the structured
    editor handles; older releases get their ``.list`` lines commented
    out. Failures are left for the unsupported-repository scan to report.
    """
    codename = ctx.platform.codename
    if not codename:
        return []
    suite = f"{codename}-backports"

    if ctx.platform.os_name == "debian" and ctx.platform.major_version >= 12:
        result = ctx.apt.disable_suites_deb822([suite])
        if not result.ok:
            logger.warning("Cannot disable %s: %s", suite, result.describe())
            return [CheckOutcome.ok(detail=result.describe())]
        return []

    changed = ctx.apt.disable_repo_pattern(AptRepoPattern.exact("Debian Backports", suite))
    if changed:
        return [CheckOutcome.ok(detail=f"disabled {suite} in {len(changed)} file(s)")]
    return []
