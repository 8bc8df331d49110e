"""
Adapter registry — selects the package-manager backend for a platform.

The backend is chosen once, from ``PlatformInfo.package_manager``, and
stays fixed for the run. Additional backends can be registered under a
kind (tests use this to plug in doubles).
"""

from __future__ import annotations

import logging
from typing import Callable

from repocheck.adapters.base import PackageManagerAdapter
from repocheck.adapters.packages.apt import AptAdapter
from repocheck.adapters.packages.rpm import DnfAdapter, YumAdapter
from repocheck.adapters.shell.command import CommandRunner
from repocheck.core.config.loader import Settings
from repocheck.core.models.platform import PackageManagerKind, PlatformInfo

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[PlatformInfo, Settings, CommandRunner], PackageManagerAdapter]


def _yum(platform: PlatformInfo, settings: Settings, runner: CommandRunner) -> PackageManagerAdapter:
    return YumAdapter(
        runner,
        repos_dir=settings.yum_repos_dir,
        backup_root=settings.backup_root,
        vendor_repo_glob=settings.vendor_repo_glob,
    )


def _dnf(platform: PlatformInfo, settings: Settings, runner: CommandRunner) -> PackageManagerAdapter:
    return DnfAdapter(
        runner,
        repos_dir=settings.yum_repos_dir,
        backup_root=settings.backup_root,
        vendor_repo_glob=settings.vendor_repo_glob,
    )


def _apt(platform: PlatformInfo, settings: Settings, runner: CommandRunner) -> PackageManagerAdapter:
    return AptAdapter(
        runner,
        os_name=platform.os_name,
        package_arch=platform.package_arch,
        apt_dir=settings.apt_dir,
        system_python=settings.system_python,
    )


class AdapterRegistry:
    """Maps a backend kind to the factory building its adapter."""

    def __init__(self) -> None:
        self._factories: dict[PackageManagerKind, AdapterFactory] = {
            PackageManagerKind.YUM: _yum,
            PackageManagerKind.DNF: _dnf,
            PackageManagerKind.APT: _apt,
        }

    def register(self, kind: PackageManagerKind, factory: AdapterFactory) -> None:
        if kind in self._factories:
            logger.debug("Overwriting adapter factory for %s", kind.value)
        self._factories[kind] = factory

    def kinds(self) -> list[PackageManagerKind]:
        return list(self._factories)

    def create(
        self,
        platform: PlatformInfo,
        settings: Settings,
        runner: CommandRunner | None = None,
    ) -> PackageManagerAdapter | None:
        """Build the adapter for *platform*, or None if it has no backend."""
        if platform.package_manager is None:
            return None
        factory = self._factories.get(platform.package_manager)
        if factory is None:
            return None
        runner = runner or CommandRunner(timeout=settings.command_timeout)
        adapter = factory(platform, settings, runner)
        logger.debug("Selected %r for %s", adapter, platform.key)
        return adapter
