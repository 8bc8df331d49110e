"""
Check outcomes and the reconciliation result — the engine's I/O contract.

Checks return outcomes, never exceptions. The engine folds them into a
single :class:`ReconciliationResult` whose status is a bit set:
WARN=1, FATAL=2. Fatal dominates warn dominates ok, and once a bit is
set no later outcome can clear it.
"""

from __future__ import annotations

from enum import Enum, IntFlag
from typing import Any, Literal

from pydantic import BaseModel, Field

from repocheck.core.models.platform import PlatformInfo


class Status(IntFlag):
    """Run status bits, also used as the process exit status."""

    OK = 0
    WARN = 1
    FATAL = 2


class ErrorKind(str, Enum):
    DETECTION_INCOMPLETE = "detectionincomplete"
    ADAPTER_UNAVAILABLE = "adapterunavailable"
    REPO_NOT_ENABLED = "reponotenabled"
    REPO_NOT_CACHED = "reponotcached"
    REPO_NOT_SUPPORTED = "reponotsupported"
    CONFIG_MANAGER_MISSING = "configmanagernotinstalled"


# Kinds that have an ``errtype`` in the structured failure report.
REPORTED_KINDS = frozenset({
    ErrorKind.REPO_NOT_ENABLED,
    ErrorKind.REPO_NOT_CACHED,
    ErrorKind.REPO_NOT_SUPPORTED,
    ErrorKind.CONFIG_MANAGER_MISSING,
})


class CheckOutcome(BaseModel):
    """Result of one policy check (or one finding of it)."""

    check: str = ""
    severity: Literal["ok", "warn", "fatal"] = "ok"
    kind: ErrorKind | None = None
    repo: str | None = None
    detail: str = ""

    @property
    def status(self) -> Status:
        if self.severity == "fatal":
            return Status.FATAL
        if self.severity == "warn":
            return Status.WARN
        return Status.OK

    @property
    def is_problem(self) -> bool:
        return self.severity != "ok"

    @classmethod
    def ok(cls, check: str = "", detail: str = "") -> CheckOutcome:
        """Create a success outcome, optionally carrying a note."""
        return cls(check=check, severity="ok", detail=detail)

    @classmethod
    def warn(
        cls,
        kind: ErrorKind,
        repo: str | None = None,
        check: str = "",
        detail: str = "",
    ) -> CheckOutcome:
        """Create a warning outcome."""
        return cls(check=check, severity="warn", kind=kind, repo=repo, detail=detail)

    @classmethod
    def fatal(
        cls,
        kind: ErrorKind,
        repo: str | None = None,
        check: str = "",
        detail: str = "",
    ) -> CheckOutcome:
        """Create a fatal outcome."""
        return cls(check=check, severity="fatal", kind=kind, repo=repo, detail=detail)


class ReconciliationResult(BaseModel):
    """Aggregate of every outcome of one run."""

    mode: str = ""
    platform: PlatformInfo | None = None
    policy_key: str | None = None
    outcomes: list[CheckOutcome] = Field(default_factory=list)
    checks_run: list[str] = Field(default_factory=list)
    short_circuited: bool = False
    skipped: str | None = None      # reason the engine did not run

    @property
    def status(self) -> Status:
        status = Status.OK
        for outcome in self.outcomes:
            status |= outcome.status
        return status

    @property
    def exit_code(self) -> int:
        return int(self.status)

    @property
    def failed(self) -> bool:
        return bool(self.status & Status.FATAL)

    @property
    def problems(self) -> list[CheckOutcome]:
        return [o for o in self.outcomes if o.is_problem]

    def add(self, outcome: CheckOutcome) -> None:
        self.outcomes.append(outcome)

    @classmethod
    def skip(cls, reason: str, **kwargs: Any) -> ReconciliationResult:
        """A run that was bypassed; always a clean success."""
        return cls(skipped=reason, **kwargs)


class RunMode(str, Enum):
    """How strictly ambiguous findings are judged."""

    CHECK = ""
    INSTALL = "install"
