"""
RPM-family backends — yum (EL7) and dnf (EL8+).

Two listings matter and they disagree on purpose:

* ``repolist`` shows every repo that was enabled when the cache was
  last built, cached or not. With ``--cacheonly`` it fails if a repo
  was enabled after that, so the live query is the fallback.
* ``repolist --verbose`` (yum) / ``repoinfo`` (dnf) only show repos
  that were actually cached, and fail outright on an unreachable repo
  unless ``skip_if_unavailable`` is set.

A repo in the first listing but not the second is broken.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from repocheck.adapters.base import AdapterUnavailable, RpmFamilyAdapter
from repocheck.adapters.shell.command import CommandResult, CommandRunner
from repocheck.adapters.shell.filesystem import (
    BackedUpRewrite,
    RewriteOutcome,
    contains_word,
    regex_edit,
)
from repocheck.core.models.platform import PackageManagerKind
from repocheck.core.models.repository import RpmRepo

logger = logging.getLogger(__name__)

SKIP_UNAVAILABLE = "--setopt=*.skip_if_unavailable=1"

_REPO_ID_RE = re.compile(r"^Repo-id\s*:\s*(\S+)\s*$")


class RpmAdapter(RpmFamilyAdapter):
    """Shared yum/dnf behavior; subclasses supply the command shapes."""

    config_manager_package = ""

    # enabled-listing line → repo id
    _enabled_line_re: re.Pattern = re.compile(r"^!?(\S+)")

    def __init__(
        self,
        runner: CommandRunner | None = None,
        repos_dir: Path = Path("/etc/yum.repos.d"),
        backup_root: Path = Path("/tmp"),
        vendor_repo_glob: str | None = None,
    ):
        super().__init__(runner)
        self.repos_dir = repos_dir
        self.backup_root = backup_root
        self.vendor_repo_glob = vendor_repo_glob

    # ── Command shapes ───────────────────────────────────────────

    def _enabled_cmds(self) -> tuple[list[str], list[str]]:
        raise NotImplementedError

    def _cached_cmd(self, *, cacheonly: bool, skip: bool) -> list[str]:
        raise NotImplementedError

    def _config_manager_help_cmd(self) -> list[str]:
        raise NotImplementedError

    def _enable_cmd(self, repo_id: str) -> list[str]:
        raise NotImplementedError

    def _makecache_cmd(self, repo_id: str) -> list[str]:
        raise NotImplementedError

    @staticmethod
    def _normalize_id(raw: str) -> str:
        return raw

    # ── Listings ─────────────────────────────────────────────────

    def list_enabled_repos(self) -> set[RpmRepo]:
        def compute() -> set[RpmRepo]:
            primary, fallback = self._enabled_cmds()
            result = self._query(primary, fallback)
            repos = set()
            # first line is the column header
            for line in result.lines[1:]:
                match = self._enabled_line_re.match(line)
                if match:
                    repos.add(RpmRepo(id=self._normalize_id(match.group(1))))
            return repos

        return self.cache.get("enabled", compute)

    def list_available_repos(self) -> set[RpmRepo]:
        def compute() -> set[RpmRepo]:
            result = self._query(self._cached_cmd(cacheonly=True, skip=True))
            return self._parse_repo_ids(result)

        return self.cache.get("available", compute)

    def _verified_repos(self) -> set[RpmRepo]:
        def compute() -> set[RpmRepo]:
            result = self._query(
                self._cached_cmd(cacheonly=True, skip=False),
                self._cached_cmd(cacheonly=False, skip=True),
            )
            return self._parse_repo_ids(result)

        return self.cache.get("verified", compute)

    def _parse_repo_ids(self, result: CommandResult) -> set[RpmRepo]:
        repos = set()
        for line in result.lines:
            match = _REPO_ID_RE.match(line)
            if match:
                repos.add(RpmRepo(id=self._normalize_id(match.group(1))))
        return repos

    def is_repo_enabled(self, ref: RpmRepo) -> bool:
        """Whether *ref* is enabled and has cached metadata."""
        try:
            return ref in self._verified_repos()
        except AdapterUnavailable as e:
            logger.info("Cannot verify repo %s: %s", ref, e)
            return False

    # ── Mutations ────────────────────────────────────────────────

    def enable_repo(self, ref: RpmRepo) -> bool:
        result = self._mutate(self._enable_cmd(ref.id))
        if not result.ok:
            logger.info("Enabling %s: %s", ref, result.describe())
            return False
        return self.is_repo_enabled(ref)

    def enable_subscription_repo(self, ref: RpmRepo) -> bool:
        """Enable *ref* through subscription-manager."""
        if self.is_repo_enabled(ref):
            return True
        result = self._mutate(["subscription-manager", "repos", "--enable", ref.id])
        if not result.ok:
            logger.info("Enabling %s: %s", ref, result.describe())
            return False
        # subscription-manager may exit 0 with "Repositories disabled by configuration."
        return self.is_repo_enabled(ref)

    def has_config_manager(self) -> bool:
        return self.runner.run(self._config_manager_help_cmd()).ok

    def install_config_manager(self) -> CommandResult:
        disable = [self.vendor_repo_glob] if self.vendor_repo_glob else []
        return self.install_package(self.config_manager_package, disable_repos=disable)

    def install_package(
        self,
        name: str,
        *,
        disable_repos: list[str] | tuple[str, ...] = (),
        enable_repos: list[str] | tuple[str, ...] = (),
        skip_unavailable: bool = True,
    ) -> CommandResult:
        cmd = [self.name, "install"]
        for glob in disable_repos:
            cmd += ["--disablerepo", glob]
        for glob in enable_repos:
            cmd += ["--enablerepo", glob]
        cmd += ["-q", "-y", name]
        if skip_unavailable:
            cmd.append(SKIP_UNAVAILABLE)
        return self._mutate(cmd)

    def update_package(self, name: str) -> CommandResult:
        return self._mutate([self.name, "update", "-q", "-y", name, SKIP_UNAVAILABLE])

    def make_cache(self, ref: RpmRepo) -> CommandResult:
        """Force metadata download for a single repo."""
        return self._mutate(self._makecache_cmd(ref.id))

    def rewrite_mirror_urls(
        self,
        old_host: str,
        new_host: str,
        old_mirrorlist_host: str | None = None,
        file_glob: str = "*.repo",
    ) -> RewriteOutcome:
        """Point ``baseurl`` lines at *new_host* and comment out mirrorlists.

        No-op (no backup, no change) when no matching file mentions
        *old_host*.
        """
        files = [p for p in self.repos_dir.glob(file_glob) if p.is_file()]
        if not any(contains_word(p, old_host) for p in files):
            return RewriteOutcome()

        old = re.escape(old_host)
        edits = [regex_edit(rf"^#*\s*baseurl\b([^/]*)//{old}/(.*)$", rf"baseurl\1//{new_host}/\2")]
        if old_mirrorlist_host:
            mirrorlist = re.escape(old_mirrorlist_host)
            edits.insert(0, regex_edit(rf"^\s*(mirrorlist\b[^/]*//{mirrorlist}/.*)$", r"#\1"))

        op = BackedUpRewrite(self.repos_dir, files, self.backup_root)
        try:
            op.backup()
            op.rewrite(edits)
        finally:
            self.invalidate()
        return op.outcome()


class YumAdapter(RpmAdapter):
    """yum on EL7-era hosts."""

    config_manager_package = "yum-utils"
    _enabled_line_re = re.compile(r"^\*?!?([^/\s]+)")

    @property
    def kind(self) -> PackageManagerKind:
        return PackageManagerKind.YUM

    @staticmethod
    def _normalize_id(raw: str) -> str:
        # 'epel/7/x86_64' when baseurl uses $releasever/$basearch
        return raw.split("/", 1)[0]

    def _enabled_cmds(self) -> tuple[list[str], list[str]]:
        return (
            ["yum", "repolist", "enabled", "--cacheonly", "-q"],
            ["yum", "repolist", "enabled", "-q", SKIP_UNAVAILABLE],
        )

    def _cached_cmd(self, *, cacheonly: bool, skip: bool) -> list[str]:
        cmd = ["yum", "repolist", "enabled", "--verbose", "-q"]
        if cacheonly:
            cmd.append("--cacheonly")
        if skip:
            cmd.append(SKIP_UNAVAILABLE)
        return cmd

    def _config_manager_help_cmd(self) -> list[str]:
        return ["yum-config-manager", "--help"]

    def _enable_cmd(self, repo_id: str) -> list[str]:
        return ["yum-config-manager", "--enable", repo_id]

    def _makecache_cmd(self, repo_id: str) -> list[str]:
        return ["yum", "makecache", "-q", "--disablerepo=*", f"--enablerepo={repo_id}"]


class DnfAdapter(RpmAdapter):
    """dnf on EL8+ hosts."""

    config_manager_package = "dnf-command(config-manager)"

    @property
    def kind(self) -> PackageManagerKind:
        return PackageManagerKind.DNF

    def _enabled_cmds(self) -> tuple[list[str], list[str]]:
        return (
            ["dnf", "repolist", "--enabled", "--cacheonly", "-q"],
            ["dnf", "repolist", "--enabled", "-q", SKIP_UNAVAILABLE],
        )

    def _cached_cmd(self, *, cacheonly: bool, skip: bool) -> list[str]:
        cmd = ["dnf", "repoinfo", "--enabled", "-q"]
        if cacheonly:
            cmd.append("--cacheonly")
        if skip:
            cmd.append(SKIP_UNAVAILABLE)
        return cmd

    def _config_manager_help_cmd(self) -> list[str]:
        return ["dnf", "config-manager", "--help"]

    def _enable_cmd(self, repo_id: str) -> list[str]:
        return ["dnf", "config-manager", "--set-enabled", repo_id]

    def _makecache_cmd(self, repo_id: str) -> list[str]:
        return ["dnf", "makecache", "--repo", repo_id, "-q"]
