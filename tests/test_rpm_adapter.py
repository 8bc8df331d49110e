"""
Tests for the yum/dnf adapters — listing parsing, retries, enabling, mirrors.
"""

import textwrap

import pytest

from conftest import fail, ok
from repocheck.adapters.base import AdapterUnavailable
from repocheck.adapters.packages.rpm import SKIP_UNAVAILABLE, DnfAdapter, YumAdapter
from repocheck.core.engine.reconciler import reconcile
from repocheck.core.models import PackageManagerKind, PlatformInfo, RpmRepo

DNF_REPOLIST = textwrap.dedent("""\
    repo id                 repo name
    appstream               AlmaLinux 8 - AppStream
    baseos                  AlmaLinux 8 - BaseOS
    broken                  Unreachable mirror
""")

DNF_REPOINFO = textwrap.dedent("""\
    Repo-id            : appstream
    Repo-name          : AlmaLinux 8 - AppStream
    Repo-status        : enabled

    Repo-id            : baseos
    Repo-name          : AlmaLinux 8 - BaseOS
""")

YUM_REPOLIST = textwrap.dedent("""\
    repo id                       repo name                          status
    !base/7/x86_64                CentOS-7 - Base                    10,072
    *epel/x86_64                  Extra Packages for Enterprise      13,791
    updates/7/x86_64              CentOS-7 - Updates                  4,691
""")

YUM_VERBOSE = textwrap.dedent("""\
    Loading "fastestmirror" plugin
    Repo-id      : base/7/x86_64
    Repo-name    : CentOS-7 - Base
    Repo-id      : updates/7/x86_64
""")


def _repoinfo(*ids):
    return ok("".join(f"Repo-id            : {i}\n" for i in ids))


class TestDnfListings:
    def test_enabled_skips_header(self, runner):
        runner.on("dnf", "repolist", respond=ok(DNF_REPOLIST))
        repos = DnfAdapter(runner).list_enabled_repos()
        assert repos == {RpmRepo(id="appstream"), RpmRepo(id="baseos"), RpmRepo(id="broken")}

    def test_available(self, runner):
        runner.on("dnf", "repoinfo", respond=ok(DNF_REPOINFO))
        repos = DnfAdapter(runner).list_available_repos()
        assert repos == {RpmRepo(id="appstream"), RpmRepo(id="baseos")}
        (cmd,) = runner.ran("dnf", "repoinfo")
        assert "--cacheonly" in cmd
        assert SKIP_UNAVAILABLE in cmd

    def test_cacheonly_failure_falls_back_to_live(self, runner):
        runner.on("dnf", "repolist", respond=[fail(1, "Cache-only enabled but no cache"), ok(DNF_REPOLIST)])
        repos = DnfAdapter(runner).list_enabled_repos()
        assert RpmRepo(id="broken") in repos
        first, second = runner.ran("dnf", "repolist")
        assert "--cacheonly" in first
        assert "--cacheonly" not in second
        assert SKIP_UNAVAILABLE in second

    def test_same_query_retried_once(self, runner):
        runner.on("dnf", "repoinfo", respond=[fail(), ok(DNF_REPOINFO)])
        assert len(DnfAdapter(runner).list_available_repos()) == 2
        first, second = runner.ran("dnf", "repoinfo")
        assert first == second

    def test_unavailable_after_retry(self, runner):
        runner.on("dnf", "repolist", respond=fail(1, "Error: Failed to download metadata"))
        with pytest.raises(AdapterUnavailable) as exc:
            DnfAdapter(runner).list_enabled_repos()
        assert "Failed to download metadata" in str(exc.value)
        assert len(runner.ran("dnf", "repolist")) == 2

    def test_listing_is_cached(self, runner):
        runner.on("dnf", "repolist", respond=ok(DNF_REPOLIST))
        adapter = DnfAdapter(runner)
        adapter.list_enabled_repos()
        adapter.list_enabled_repos()
        assert len(runner.ran("dnf", "repolist")) == 1

    def test_mutation_invalidates_cache(self, runner):
        runner.on("dnf", "repolist", respond=ok(DNF_REPOLIST))
        adapter = DnfAdapter(runner)
        adapter.list_enabled_repos()
        adapter.install_package("epel-release")
        assert len(adapter.cache) == 0
        adapter.list_enabled_repos()
        assert len(runner.ran("dnf", "repolist")) == 2


class TestYumListings:
    def test_enabled_ids_are_normalized(self, runner):
        runner.on("yum", "repolist", respond=ok(YUM_REPOLIST))
        repos = YumAdapter(runner).list_enabled_repos()
        assert repos == {RpmRepo(id="base"), RpmRepo(id="epel"), RpmRepo(id="updates")}

    def test_verbose_listing(self, runner):
        runner.on("yum", "repolist", "enabled", "--verbose", respond=ok(YUM_VERBOSE))
        repos = YumAdapter(runner).list_available_repos()
        assert repos == {RpmRepo(id="base"), RpmRepo(id="updates")}


class TestEnable:
    def test_enable_verified(self, runner):
        runner.on("dnf", "repoinfo", respond=_repoinfo("baseos", "crb"))
        assert DnfAdapter(runner).enable_repo(RpmRepo(id="crb"))
        assert runner.ran("dnf", "config-manager", "--set-enabled", "crb")

    def test_enable_exit_zero_but_not_cached(self, runner):
        runner.on("dnf", "repoinfo", respond=_repoinfo("baseos"))
        assert not DnfAdapter(runner).enable_repo(RpmRepo(id="crb"))

    def test_enable_command_fails(self, runner):
        runner.on("yum-config-manager", respond=fail(1, "No matching repo"))
        assert not YumAdapter(runner).enable_repo(RpmRepo(id="rhel-7-server-optional-rpms"))
        assert not runner.ran("yum", "repolist")

    def test_verification_failure_means_not_enabled(self, runner):
        runner.on("dnf", "repoinfo", respond=fail())
        assert not DnfAdapter(runner).enable_repo(RpmRepo(id="crb"))

    def test_verification_sees_fresh_listing(self, runner):
        runner.on("dnf", "repoinfo", respond=[_repoinfo("baseos"), _repoinfo("baseos", "crb")])
        adapter = DnfAdapter(runner)
        assert not adapter.is_repo_enabled(RpmRepo(id="crb"))
        assert adapter.enable_repo(RpmRepo(id="crb"))

    def test_subscription_already_enabled(self, runner):
        runner.on("dnf", "repoinfo", respond=_repoinfo("codeready-builder-for-rhel-9-x86_64-rpms"))
        ref = RpmRepo(id="codeready-builder-for-rhel-9-x86_64-rpms")
        assert DnfAdapter(runner).enable_subscription_repo(ref)
        assert not runner.ran("subscription-manager")

    def test_subscription_disabled_by_configuration(self, runner):
        runner.on("dnf", "repoinfo", respond=_repoinfo("baseos"))
        runner.on("subscription-manager", respond=ok("Repositories disabled by configuration.\n"))
        ref = RpmRepo(id="codeready-builder-for-rhel-9-x86_64-rpms")
        assert not DnfAdapter(runner).enable_subscription_repo(ref)
        assert runner.ran("subscription-manager", "repos", "--enable", ref.id)


class TestPackages:
    def test_config_manager_detection(self, runner):
        runner.on("yum-config-manager", "--help", respond=fail(127))
        assert not YumAdapter(runner).has_config_manager()
        assert DnfAdapter(runner).has_config_manager()

    def test_install_config_manager_disables_vendor_repos(self, runner):
        DnfAdapter(runner, vendor_repo_glob="PLESK_*").install_config_manager()
        (cmd,) = runner.ran("dnf", "install")
        assert cmd[:4] == ["dnf", "install", "--disablerepo", "PLESK_*"]
        assert "dnf-command(config-manager)" in cmd

    def test_install_from_single_repo(self, runner):
        YumAdapter(runner).install_package(
            "epel-release",
            disable_repos=["*"],
            enable_repos=["PLESK_18_*-thirdparty"],
            skip_unavailable=False,
        )
        (cmd,) = runner.ran("yum", "install")
        assert cmd == [
            "yum", "install", "--disablerepo", "*", "--enablerepo", "PLESK_18_*-thirdparty",
            "-q", "-y", "epel-release",
        ]

    def test_make_cache(self, runner):
        YumAdapter(runner).make_cache(RpmRepo(id="epel-testing"))
        DnfAdapter(runner).make_cache(RpmRepo(id="epel-testing"))
        assert runner.ran("yum", "makecache", "-q", "--disablerepo=*", "--enablerepo=epel-testing")
        assert runner.ran("dnf", "makecache", "--repo", "epel-testing", "-q")


CENTOS_BASE = textwrap.dedent("""\
    [base]
    name=CentOS-$releasever - Base
    mirrorlist=http://mirrorlist.centos.org/?release=$releasever&arch=$basearch&repo=os
    #baseurl=http://mirror.centos.org/centos/$releasever/os/$basearch/
    gpgcheck=1
""")


class TestMirrorRewrite:
    @pytest.fixture
    def repos_dir(self, tmp_path):
        d = tmp_path / "yum.repos.d"
        d.mkdir()
        (d / "CentOS-Base.repo").write_text(CENTOS_BASE)
        (d / "other.repo").write_text("baseurl=http://mirror.centos.org/other/\n")
        return d

    def _rewrite(self, runner, repos_dir, backup_root):
        adapter = YumAdapter(runner, repos_dir=repos_dir, backup_root=backup_root)
        return adapter.rewrite_mirror_urls(
            "mirror.centos.org", "vault.centos.org", "mirrorlist.centos.org", "CentOS-*.repo",
        )

    def test_rewrites_and_backs_up(self, runner, repos_dir, tmp_path):
        outcome = self._rewrite(runner, repos_dir, tmp_path / "backups")

        assert outcome.ok
        assert outcome.changed_files == [repos_dir / "CentOS-Base.repo"]
        text = (repos_dir / "CentOS-Base.repo").read_text()
        assert "#mirrorlist=http://mirrorlist.centos.org/" in text
        assert "\nbaseurl=http://vault.centos.org/centos/$releasever/os/$basearch/\n" in text
        assert "gpgcheck=1" in text

        assert outcome.backup_dir.parent == tmp_path / "backups"
        assert outcome.backup_dir.name.startswith("yum.repos.d-")
        assert (outcome.backup_dir / "CentOS-Base.repo").read_text() == CENTOS_BASE

    def test_files_outside_glob_untouched(self, runner, repos_dir, tmp_path):
        self._rewrite(runner, repos_dir, tmp_path / "backups")
        assert (repos_dir / "other.repo").read_text() == "baseurl=http://mirror.centos.org/other/\n"

    def test_second_run_is_noop(self, runner, repos_dir, tmp_path):
        self._rewrite(runner, repos_dir, tmp_path / "backups")
        outcome = self._rewrite(runner, repos_dir, tmp_path / "backups2")
        assert not outcome.changed
        assert outcome.backup_dir is None
        assert not (tmp_path / "backups2").exists()

    def test_invalidates_listings(self, runner, repos_dir, tmp_path):
        runner.on("yum", "repolist", respond=ok(YUM_REPOLIST))
        adapter = YumAdapter(runner, repos_dir=repos_dir, backup_root=tmp_path / "b")
        adapter.list_enabled_repos()
        adapter.rewrite_mirror_urls("mirror.centos.org", "vault.centos.org")
        assert len(adapter.cache) == 0

    def test_non_utf8_repo_file(self, runner, tmp_path):
        repos_dir = tmp_path / "yum.repos.d"
        repos_dir.mkdir()
        repo = repos_dir / "CentOS-Base.repo"
        repo.write_bytes(
            b"# Caf\xe9 mirror\n[base]\n#baseurl=http://mirror.centos.org/centos/7/os/x86_64/\n"
        )

        outcome = self._rewrite(runner, repos_dir, tmp_path / "backups")

        assert outcome.ok
        assert repo.read_bytes() == (
            b"# Caf\xe9 mirror\n[base]\nbaseurl=http://vault.centos.org/centos/7/os/x86_64/\n"
        )


class TestMirrorMigrationRun:
    def test_non_utf8_repo_file_does_not_abort_reconcile(self, runner, tmp_path):
        repos_dir = tmp_path / "yum.repos.d"
        repos_dir.mkdir()
        (repos_dir / "CentOS-Base.repo").write_bytes(
            b"# Caf\xe9\n[base]\nbaseurl=http://mirror.centos.org/centos/7/os/x86_64/\n"
        )
        adapter = YumAdapter(runner, repos_dir=repos_dir, backup_root=tmp_path / "backups")
        platform = PlatformInfo(
            os_name="centos", major_version=7, architecture="x86_64",
            package_manager=PackageManagerKind.YUM,
        )

        result = reconcile(platform, adapter)

        assert result.checks_run[0] == "eol-mirror-migration"
        migration = [o for o in result.outcomes if o.check == "eol-mirror-migration"]
        assert migration and not migration[0].is_problem
        assert b"vault.centos.org" in (repos_dir / "CentOS-Base.repo").read_bytes()
