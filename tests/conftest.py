"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence, Union

import pytest

from repocheck.adapters.shell.command import CommandResult, CommandRunner
from repocheck.core.config.loader import Settings

Response = Union[CommandResult, Callable[[list[str]], CommandResult]]


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(command=[], returncode=0, stdout=stdout)


def fail(rc: int = 1, stderr: str = "error") -> CommandResult:
    return CommandResult(command=[], returncode=rc, stderr=stderr)


class ScriptedRunner(CommandRunner):
    """Command runner answering from canned responses.

    Rules are matched by command prefix, most recently added first.
    A rule given a list of responses hands them out in order and then
    repeats the last one. Unmatched commands succeed with no output.
    """

    def __init__(self) -> None:
        super().__init__(timeout=None)
        self._rules: list[tuple[tuple[str, ...], list[Response]]] = []

    def on(self, *prefix: str, respond: Union[Response, Sequence[Response]]) -> ScriptedRunner:
        responses = list(respond) if isinstance(respond, (list, tuple)) else [respond]
        self._rules.insert(0, (prefix, responses))
        return self

    def run(self, cmd, *, env=None) -> CommandResult:
        cmd = list(cmd)
        self.history.append(cmd)
        for prefix, responses in self._rules:
            if tuple(cmd[: len(prefix)]) == prefix:
                response = responses.pop(0) if len(responses) > 1 else responses[0]
                result = response(cmd) if callable(response) else response
                return CommandResult(
                    command=cmd,
                    returncode=result.returncode,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    error=result.error,
                )
        return CommandResult(command=cmd)

    def ran(self, *prefix: str) -> list[list[str]]:
        """Commands run so far that start with *prefix*."""
        return [c for c in self.history if tuple(c[: len(prefix)]) == prefix]


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def write_os_release(tmp_path: Path) -> Callable[..., Path]:
    """Write an os-release file (and optionally debian_version) under tmp_path."""

    def _write(content: str, debian: bool = False) -> Path:
        etc = tmp_path / "etc"
        etc.mkdir(exist_ok=True)
        path = etc / "os-release"
        path.write_text(content)
        if debian:
            (etc / "debian_version").write_text("12.5\n")
        return path

    return _write


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every host path into tmp_path."""
    etc = tmp_path / "etc"
    etc.mkdir(exist_ok=True)
    return Settings(
        skip_flag=tmp_path / "skip.flag",
        os_release_path=etc / "os-release",
        debian_version_path=etc / "debian_version",
        yum_repos_dir=etc / "yum.repos.d",
        apt_dir=etc / "apt",
        backup_root=tmp_path / "backups",
        command_timeout=None,
    )
