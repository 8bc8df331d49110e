"""
Adapter base — the contract between the engine and package managers.

The policy checks only talk to package managers through this
interface, never to the binaries directly. One variant exists per
backend family (yum, dnf, apt); it is selected once at detection time
and never switched mid-run.

Listings are memoized in a :class:`ListingCache` owned by the adapter.
Every mutating operation calls :meth:`PackageManagerAdapter.invalidate`
so no check reads a snapshot taken before a mutation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Sequence, TypeVar

from repocheck.adapters.shell.command import CommandResult, CommandRunner
from repocheck.adapters.shell.filesystem import RewriteOutcome
from repocheck.core.models.platform import PackageManagerKind
from repocheck.core.models.repository import AptRepo, AptRepoPattern, RepositoryRef, RpmRepo

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AdapterUnavailable(Exception):
    """A package-manager query failed even after its retry."""

    def __init__(self, message: str, result: CommandResult | None = None):
        super().__init__(message)
        self.result = result


class ListingCache:
    """Process-local memo of package-manager listings."""

    def __init__(self) -> None:
        self._entries: dict[str, object] = {}

    def get(self, key: str, compute: Callable[[], T]) -> T:
        if key not in self._entries:
            self._entries[key] = compute()
        return self._entries[key]  # type: ignore[return-value]

    def invalidate(self) -> None:
        if self._entries:
            logger.debug("Invalidating %d cached listing(s)", len(self._entries))
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class PackageManagerAdapter(ABC):
    """Uniform capability surface over one package-manager backend.

    Listings raise :class:`AdapterUnavailable` when the backend cannot
    answer. Mutations return a bool or a :class:`CommandResult` and
    never raise.
    """

    def __init__(self, runner: CommandRunner | None = None):
        self.runner = runner or CommandRunner()
        self.cache = ListingCache()

    @property
    @abstractmethod
    def kind(self) -> PackageManagerKind:
        """Backend family of this adapter."""

    @property
    def name(self) -> str:
        """Binary name shown to the operator (``yum``, ``dnf``, ``apt``)."""
        return self.kind.value

    @abstractmethod
    def list_enabled_repos(self) -> set[RepositoryRef]:
        """Repositories the package manager will consult, reachable or not."""

    @abstractmethod
    def list_available_repos(self) -> set[RepositoryRef]:
        """Repositories that were successfully cached."""

    @abstractmethod
    def enable_repo(self, ref: RepositoryRef) -> bool:
        """Enable *ref*; True if it is enabled afterwards (re-verified)."""

    @abstractmethod
    def has_config_manager(self) -> bool:
        """Whether the repository-toggling helper is installed."""

    @abstractmethod
    def install_config_manager(self) -> CommandResult:
        """Install the repository-toggling helper."""

    @abstractmethod
    def install_package(self, name: str) -> CommandResult:
        """Install *name*; "already installed" counts as success.

        Backends may accept extra keyword-only options with defaults.
        """

    def invalidate(self) -> None:
        """Drop every memoized listing."""
        self.cache.invalidate()

    def _query(
        self,
        cmd: Sequence[str],
        fallback: Sequence[str] | None = None,
    ) -> CommandResult:
        """Run a read-only query, retrying once before giving up.

        The retry uses *fallback* (the "skip unavailable" flavor of the
        query) when given, otherwise the same command again.
        """
        result = self.runner.run(cmd)
        if result.ok:
            return result

        retry = list(fallback) if fallback is not None else list(cmd)
        logger.info("%s; retrying with: %s", result.describe(), " ".join(retry))
        result = self.runner.run(retry)
        if result.ok:
            return result

        raise AdapterUnavailable(result.describe(), result)

    def _mutate(self, cmd: Sequence[str], **kwargs) -> CommandResult:
        """Run a mutating command and invalidate cached listings."""
        try:
            return self.runner.run(cmd, **kwargs)
        finally:
            self.invalidate()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.kind.value!r}>"


class RpmFamilyAdapter(PackageManagerAdapter):
    """Operations only the yum/dnf backends offer."""

    @abstractmethod
    def is_repo_enabled(self, ref: RpmRepo) -> bool:
        """Whether *ref* is enabled and has cached metadata."""

    @abstractmethod
    def enable_subscription_repo(self, ref: RpmRepo) -> bool:
        """Enable *ref* through subscription-manager; True if enabled afterwards."""

    @abstractmethod
    def update_package(self, name: str) -> CommandResult:
        """Update an installed package to its latest release."""

    @abstractmethod
    def make_cache(self, ref: RpmRepo) -> CommandResult:
        """Download metadata of a single repo."""

    @abstractmethod
    def rewrite_mirror_urls(
        self,
        old_host: str,
        new_host: str,
        old_mirrorlist_host: str | None = None,
        file_glob: str = "*.repo",
    ) -> RewriteOutcome:
        """Move repo files off a retired mirror host, after a backup."""


class AptFamilyAdapter(PackageManagerAdapter):
    """Operations only the apt backend offers."""

    @abstractmethod
    def find_matching_repos(self, pattern: AptRepoPattern) -> list[AptRepo]:
        """Known releases matching *pattern*, without duplicates."""

    @abstractmethod
    def disable_repo_pattern(self, pattern: AptRepoPattern) -> list[Path]:
        """Disable one-line sources of matching releases; returns changed files."""

    @abstractmethod
    def disable_suites_deb822(self, suites: list[str]) -> CommandResult:
        """Drop *suites* from every source, deb822 files included."""
