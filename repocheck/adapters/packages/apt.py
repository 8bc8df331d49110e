"""
APT backend — Debian and Ubuntu.

APT has no repository ids and no enable switch. What the host can
install from is read off ``apt-cache policy``: each ``release`` line
carries comma-separated tags (``o=``, ``a=``, ``n=``, ``l=``, ``c=``,
``b=``) describing one (label, suite, component) for one architecture.
Ubuntu is matched on the archive tag ``a=``, Debian on the codename
tag ``n=``.

Disabling happens by editing sources: one-line ``.list`` files get the
matching lines commented out; deb822 ``.sources`` files are edited
through ``aptsources`` by the system interpreter that owns python3-apt.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from repocheck.adapters.base import AptFamilyAdapter
from repocheck.adapters.shell.command import CommandResult, CommandRunner
from repocheck.core.models.platform import PackageManagerKind
from repocheck.core.models.repository import AptRepo, AptRepoPattern

logger = logging.getLogger(__name__)

APT_ENV = {
    "DEBIAN_FRONTEND": "noninteractive",
    "LANG": "C",
    "PATH": "/usr/sbin:/usr/bin:/sbin:/bin",
}

APT_GET_INSTALL = [
    "apt-get", "-qq", "--assume-yes",
    "-o", "Dpkg::Options::=--force-confdef",
    "-o", "Dpkg::Options::=--force-confold",
    "-o", "APT::Install-Recommends=no",
    "install",
]

# Runs under the system interpreter; argv[1:] are the suites to drop.
DEB822_DISABLE_SCRIPT = """\
import sys

from aptsources.sourceslist import SourcesList

suites_to_disable = set(sys.argv[1:])
sources_list = SourcesList(deb822=True)

changed = False
for src in sources_list:
    if src.invalid:
        continue
    suites = getattr(src, "suites", ())
    if not suites:
        continue
    new_suites = [s for s in suites if s not in suites_to_disable]
    if len(new_suites) != len(suites):
        changed = True
        if not new_suites:
            src.disabled = True
        else:
            src.suites = new_suites

if changed:
    sources_list.save()
"""

_TAG_RE = re.compile(r"(?:^|,)\s*([a-z])=([^,]*)")


def parse_policy_release(line: str) -> dict[str, str]:
    """Tags of one ``apt-cache policy`` release line (empty if not one)."""
    text = line.strip()
    if not text.startswith("release "):
        return {}
    return {k: v.strip() for k, v in _TAG_RE.findall(text[len("release "):])}


class AptAdapter(AptFamilyAdapter):
    """apt-get/apt-cache on Debian-family hosts."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        os_name: str = "debian",
        package_arch: str = "amd64",
        apt_dir: Path = Path("/etc/apt"),
        system_python: str = "/usr/bin/python3",
    ):
        super().__init__(runner)
        self.os_name = os_name
        self.package_arch = package_arch
        self.apt_dir = apt_dir
        self.system_python = system_python

    @property
    def kind(self) -> PackageManagerKind:
        return PackageManagerKind.APT

    @property
    def suite_tag(self) -> str:
        return "a" if self.os_name == "ubuntu" else "n"

    # ── Listings ─────────────────────────────────────────────────

    def _policy_releases(self) -> list[AptRepo]:
        def compute() -> list[AptRepo]:
            result = self._query(["apt-cache", "policy"])
            releases = []
            for line in result.lines:
                tags = parse_policy_release(line)
                if tags.get("b") != self.package_arch:
                    continue
                releases.append(AptRepo(
                    label=tags.get("l", ""),
                    suite=tags.get(self.suite_tag, ""),
                    component=tags.get("c", ""),
                ))
            return releases

        return self.cache.get("policy", compute)

    def list_enabled_repos(self) -> set[AptRepo]:
        return set(self._policy_releases())

    def list_available_repos(self) -> set[AptRepo]:
        # apt-cache policy only knows releases whose lists were fetched
        return set(self._policy_releases())

    def find_matching_repos(self, pattern: AptRepoPattern) -> list[AptRepo]:
        """Releases matching *pattern*, in ``apt-cache policy`` order."""
        seen: set[AptRepo] = set()
        matches = []
        for repo in self._policy_releases():
            if repo not in seen and pattern.matches(repo):
                seen.add(repo)
                matches.append(repo)
        return matches

    # ── Mutations ────────────────────────────────────────────────

    def enable_repo(self, ref: AptRepo) -> bool:
        # Nothing to toggle: a release is usable iff apt knows it.
        pattern = AptRepoPattern.exact(ref.label, ref.suite, ref.component)
        return bool(self.find_matching_repos(pattern))

    def has_config_manager(self) -> bool:
        return True

    def install_config_manager(self) -> CommandResult:
        return CommandResult(command=[])

    def install_package(self, name: str) -> CommandResult:
        return self._mutate(APT_GET_INSTALL + [name], env=APT_ENV)

    def disable_repo_pattern(self, pattern: AptRepoPattern) -> list[Path]:
        """Comment out one-line sources entries for every matching release.

        Returns the files that were changed.
        """
        targets = sorted({(r.suite, r.component) for r in self.find_matching_repos(pattern)})
        if not targets:
            return []

        regexes = [
            re.compile(rf"\s{re.escape(suite)}\s+{re.escape(component)}\b")
            for suite, component in targets
        ]
        changed: list[Path] = []
        try:
            for path in sorted(self.apt_dir.rglob("*.list")):
                if self._comment_out(path, regexes):
                    changed.append(path)
        finally:
            self.invalidate()
        return changed

    @staticmethod
    def _comment_out(path: Path, regexes: list[re.Pattern]) -> bool:
        try:
            text = path.read_text(encoding="utf-8", errors="surrogateescape")
        except OSError as e:
            logger.warning("Cannot read %s: %s", path, e)
            return False
        lines = text.splitlines(keepends=True)

        modified = False
        for i, line in enumerate(lines):
            if line.lstrip().startswith("#"):
                continue
            if any(rx.search(line) for rx in regexes):
                lines[i] = "# " + line
                modified = True

        if modified:
            try:
                path.write_text("".join(lines), encoding="utf-8", errors="surrogateescape")
            except OSError as e:
                logger.warning("Cannot write %s: %s", path, e)
                return False
            logger.debug("Disabled entries in %s", path)
        return modified

    def disable_suites_deb822(self, suites: list[str]) -> CommandResult:
        """Drop *suites* from every source, deb822 files included."""
        try:
            check = self.runner.run([self.system_python, "-c", "import aptsources.sourceslist"])
            if not check.ok:
                logger.info("python3-apt is missing, installing it")
                installed = self.install_package("python3-apt")
                if not installed.ok:
                    return installed
            return self.runner.run([self.system_python, "-c", DEB822_DISABLE_SCRIPT, *suites])
        finally:
            self.invalidate()
