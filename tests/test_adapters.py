"""
Tests for the adapter registry, listing cache and mock backend.
"""

import pytest

from repocheck.adapters import (
    AdapterRegistry,
    AptFamilyAdapter,
    ListingCache,
    MockPackageManager,
    RpmFamilyAdapter,
)
from repocheck.adapters.packages import AptAdapter, DnfAdapter, YumAdapter
from repocheck.core.models import AptRepo, AptRepoPattern, PackageManagerKind, PlatformInfo, RpmRepo
from repocheck.core.services.checks import CheckContext


def _platform(os_name, major, pm):
    return PlatformInfo(os_name=os_name, major_version=major, architecture="aarch64", package_manager=pm)


class TestAdapterRegistry:
    def test_builtin_kinds(self):
        assert set(AdapterRegistry().kinds()) == set(PackageManagerKind)

    def test_creates_backend(self, settings, runner):
        registry = AdapterRegistry()
        yum = registry.create(_platform("centos", 7, PackageManagerKind.YUM), settings, runner)
        dnf = registry.create(_platform("rocky", 8, PackageManagerKind.DNF), settings, runner)
        apt = registry.create(_platform("ubuntu", 22, PackageManagerKind.APT), settings, runner)
        assert isinstance(yum, YumAdapter)
        assert isinstance(dnf, DnfAdapter)
        assert isinstance(apt, AptAdapter)
        assert dnf.repos_dir == settings.yum_repos_dir
        assert apt.package_arch == "arm64"
        assert apt.suite_tag == "a"
        assert apt.runner is runner

    def test_no_backend(self, settings):
        assert AdapterRegistry().create(_platform("arch", 1, None), settings) is None

    def test_default_runner_uses_timeout(self, settings):
        settings = settings.model_copy(update={"command_timeout": 42})
        adapter = AdapterRegistry().create(_platform("rocky", 9, PackageManagerKind.DNF), settings)
        assert adapter.runner.timeout == 42

    def test_register_override(self, settings):
        mock = MockPackageManager()
        registry = AdapterRegistry()
        registry.register(PackageManagerKind.DNF, lambda platform, settings, runner: mock)
        assert registry.create(_platform("rocky", 9, PackageManagerKind.DNF), settings) is mock


class TestListingCache:
    def test_computes_once(self):
        cache = ListingCache()
        calls = []
        compute = lambda: calls.append(1) or {"x"}
        assert cache.get("k", compute) == {"x"}
        assert cache.get("k", compute) == {"x"}
        assert len(calls) == 1

    def test_invalidate(self):
        cache = ListingCache()
        cache.get("k", lambda: 1)
        cache.invalidate()
        assert len(cache) == 0


class TestMockPackageManager:
    def test_enable(self):
        mock = MockPackageManager(enableable={RpmRepo(id="crb")})
        assert mock.enable_repo(RpmRepo(id="crb"))
        assert not mock.enable_repo(RpmRepo(id="other"))
        assert RpmRepo(id="crb") in mock.list_enabled_repos()
        assert mock.call_count == 3

    def test_failing_install_by_repo(self):
        mock = MockPackageManager(failing_installs={"pkg@vendor"})
        assert mock.install_package("pkg").ok
        assert not mock.install_package("pkg", enable_repos=["vendor"]).ok

    def test_find_sorted(self):
        repos = {AptRepo(label="Ubuntu", suite=s, component="main") for s in ("noble", "jammy")}
        mock = MockPackageManager(kind=PackageManagerKind.APT, enabled=repos)
        found = mock.find_matching_repos(AptRepoPattern(label="Ubuntu"))
        assert [r.suite for r in found] == ["jammy", "noble"]


class TestAdapterFamilies:
    def test_rpm_backends(self, runner):
        for cls in (YumAdapter, DnfAdapter):
            adapter = cls(runner)
            assert isinstance(adapter, RpmFamilyAdapter)
            assert not isinstance(adapter, AptFamilyAdapter)

    def test_apt_backend(self, runner):
        adapter = AptAdapter(runner)
        assert isinstance(adapter, AptFamilyAdapter)
        assert not isinstance(adapter, RpmFamilyAdapter)

    def test_mock_serves_both_families(self):
        mock = MockPackageManager()
        assert isinstance(mock, RpmFamilyAdapter)
        assert isinstance(mock, AptFamilyAdapter)

    def test_incomplete_backend_cannot_be_built(self):
        class Partial(RpmFamilyAdapter):
            kind = PackageManagerKind.DNF

        with pytest.raises(TypeError):
            Partial()

    def test_context_rejects_wrong_family(self, runner):
        ctx = CheckContext(
            platform=_platform("rocky", 9, PackageManagerKind.DNF),
            adapter=DnfAdapter(runner),
        )
        assert ctx.rpm is ctx.adapter
        with pytest.raises(TypeError, match="not an apt adapter"):
            ctx.apt
