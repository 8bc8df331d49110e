"""
Mock package manager — in-memory test double for every backend.

Holds enabled/available repository sets and answers listings from
them. Configurable to refuse enabling, lack the config-manager helper,
fail installs, or fail listings, and records every call.
"""

from __future__ import annotations

from pathlib import Path

from repocheck.adapters.base import AdapterUnavailable, AptFamilyAdapter, RpmFamilyAdapter
from repocheck.adapters.shell.command import CommandResult
from repocheck.adapters.shell.filesystem import RewriteOutcome
from repocheck.core.models.platform import PackageManagerKind
from repocheck.core.models.repository import AptRepo, AptRepoPattern, RepositoryRef, RpmRepo


class MockPackageManager(RpmFamilyAdapter, AptFamilyAdapter):
    """Universal mock adapter for testing.

    By default every repository in ``enableable`` can be enabled,
    the config manager is present and installs succeed.
    """

    def __init__(
        self,
        kind: PackageManagerKind = PackageManagerKind.DNF,
        enabled: set[RepositoryRef] | None = None,
        available: set[RepositoryRef] | None = None,
        enableable: set[RepositoryRef] | None = None,
        has_config_manager: bool = True,
        config_manager_installable: bool = True,
        failing_installs: set[str] | None = None,
        installs_provide: dict[str, set[RepositoryRef]] | None = None,
        listing_error: str | None = None,
    ):
        super().__init__()
        self._kind = kind
        self.enabled: set[RepositoryRef] = set(enabled or ())
        self.available: set[RepositoryRef] = (
            set(available) if available is not None else set(self.enabled)
        )
        self.enableable: set[RepositoryRef] = set(enableable or ())
        self._has_config_manager = has_config_manager
        self._config_manager_installable = config_manager_installable
        self.failing_installs = set(failing_installs or ())
        self.installs_provide = dict(installs_provide or {})
        self.listing_error = listing_error
        self.calls: list[tuple] = []

    @property
    def kind(self) -> PackageManagerKind:
        return self._kind

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def called(self, method: str) -> list[tuple]:
        """All recorded calls of *method*."""
        return [c for c in self.calls if c[0] == method]

    def _listing(self, which: str) -> set[RepositoryRef]:
        self.calls.append((which,))
        if self.listing_error:
            raise AdapterUnavailable(self.listing_error)
        return set(self.enabled if which == "list_enabled_repos" else self.available)

    def list_enabled_repos(self) -> set[RepositoryRef]:
        return self._listing("list_enabled_repos")

    def list_available_repos(self) -> set[RepositoryRef]:
        return self._listing("list_available_repos")

    def is_repo_enabled(self, ref: RepositoryRef) -> bool:
        self.calls.append(("is_repo_enabled", ref))
        return ref in self.enabled and ref in self.available

    def enable_repo(self, ref: RepositoryRef) -> bool:
        self.calls.append(("enable_repo", ref))
        if ref in self.enableable:
            self.enabled.add(ref)
            self.available.add(ref)
            self.invalidate()
        return ref in self.enabled and ref in self.available

    def enable_subscription_repo(self, ref: RpmRepo) -> bool:
        self.calls.append(("enable_subscription_repo", ref))
        return self.enable_repo(ref)

    def has_config_manager(self) -> bool:
        self.calls.append(("has_config_manager",))
        return self._has_config_manager

    def install_config_manager(self) -> CommandResult:
        self.calls.append(("install_config_manager",))
        if self._config_manager_installable:
            self._has_config_manager = True
            return CommandResult(command=["install-config-manager"])
        return CommandResult(command=["install-config-manager"], returncode=1, error="mock failure")

    def install_package(self, name: str, **opts) -> CommandResult:
        self.calls.append(("install_package", name, opts))
        # "name@glob" fails only the install that enables that repo glob
        enable = opts.get("enable_repos")
        key = f"{name}@{enable[0]}" if enable else name
        if key in self.failing_installs:
            return CommandResult(command=["install", name], returncode=1, error="mock failure")
        provided = self.installs_provide.pop(name, set())
        self.enabled |= provided
        self.available |= provided
        self.invalidate()
        return CommandResult(command=["install", name])

    def update_package(self, name: str) -> CommandResult:
        self.calls.append(("update_package", name))
        return CommandResult(command=["update", name])

    def make_cache(self, ref: RpmRepo) -> CommandResult:
        self.calls.append(("make_cache", ref))
        self.available.add(ref)
        return CommandResult(command=["makecache", str(ref)])

    def rewrite_mirror_urls(
        self,
        old_host: str,
        new_host: str,
        old_mirrorlist_host: str | None = None,
        file_glob: str = "*.repo",
    ) -> RewriteOutcome:
        self.calls.append(("rewrite_mirror_urls", old_host, new_host))
        return RewriteOutcome()

    def find_matching_repos(self, pattern: AptRepoPattern) -> list[AptRepo]:
        self.calls.append(("find_matching_repos", pattern))
        if self.listing_error:
            raise AdapterUnavailable(self.listing_error)
        return sorted(
            (r for r in self.enabled if isinstance(r, AptRepo) and pattern.matches(r)),
            key=str,
        )

    def disable_repo_pattern(self, pattern: AptRepoPattern) -> list[Path]:
        self.calls.append(("disable_repo_pattern", pattern))
        matched = {r for r in self.enabled if isinstance(r, AptRepo) and pattern.matches(r)}
        self.enabled -= matched
        self.available -= matched
        self.invalidate()
        return []

    def disable_suites_deb822(self, suites: list[str]) -> CommandResult:
        self.calls.append(("disable_suites_deb822", list(suites)))
        dropped = {r for r in self.enabled if isinstance(r, AptRepo) and r.suite in suites}
        self.enabled -= dropped
        self.available -= dropped
        self.invalidate()
        return CommandResult(command=["deb822"])
