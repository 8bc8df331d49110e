"""
Failure report — operator messages plus an NDJSON record per failure.

Every problem outcome is written to stderr as a remediation message.
When a report file is configured, each one with a reportable
``errtype`` is also appended to it as a single JSON line, for the
calling installer to pick up.

The file is append-only: one run adds lines, never rewrites them.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import TextIO

from pydantic import BaseModel, Field

from repocheck.core.models.outcome import (
    REPORTED_KINDS,
    CheckOutcome,
    ErrorKind,
    ReconciliationResult,
)

logger = logging.getLogger(__name__)

_CONFIG_MANAGER_TARGETS = {
    "yum": "yum-utils package",
    "dnf": "config-manager dnf plugin",
}


def now_ns_iso() -> str:
    """UTC time with nanoseconds, as ``date --utc --iso-8601=ns`` prints it."""
    ns = time.time_ns()
    seconds, fraction = divmod(ns, 1_000_000_000)
    stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(seconds))
    return f"{stamp},{fraction:09d}+00:00"


class ReportRecord(BaseModel):
    """One line of the structured failure report."""

    stage: str = "repositorycheck"
    level: str = "error"            # on every record, warnings included
    errtype: str
    repo: str | None = None
    date: str = Field(default_factory=now_ns_iso)
    error: str = ""


def render_message(outcome: CheckOutcome, package_manager: str) -> str:
    """Human-readable remediation text for a problem outcome."""
    repo = outcome.repo or ""
    pm = package_manager

    if outcome.kind is ErrorKind.REPO_NOT_ENABLED:
        return (
            f"Installation requires '{repo}' OS repository to be enabled.\n"
            "Make sure it is available and enabled, then try again.\n"
        )
    if outcome.kind is ErrorKind.REPO_NOT_CACHED:
        return (
            f"Unable to create {pm} cache for '{repo}' OS repository.\n"
            "Make sure the repository is available, otherwise either disable it "
            "or fix its configuration, then try again.\n"
        )
    if outcome.kind is ErrorKind.REPO_NOT_SUPPORTED:
        return (
            f"Installation doesn't support '{repo}' OS repository.\n"
            "Make sure it is disabled, then try again.\n"
        )
    if outcome.kind is ErrorKind.CONFIG_MANAGER_MISSING:
        target = _CONFIG_MANAGER_TARGETS.get(pm, "repository config manager")
        return (
            f"Failed to install {target}.\n"
            f"Make sure repositories configuration of {pm} package manager is correct\n"
            f"(use '{pm} repolist --verbose' to get its actual state), then try again.\n"
        )
    if outcome.kind is ErrorKind.ADAPTER_UNAVAILABLE:
        return (
            f"Unable to query {pm} repositories: {outcome.detail}\n"
            f"Make sure {pm} works and its repositories are reachable, then try again.\n"
        )
    return f"{outcome.check}: {outcome.detail or outcome.kind}\n"


class ReportEmitter:
    """Writes a run's problems to the operator and the report file.

    Args:
        report_path: NDJSON report file; None writes to the stream only.
        stream: Where operator messages go (default: stderr).
        stage: Value of the ``stage`` field of every record.
    """

    def __init__(
        self,
        report_path: Path | None = None,
        stream: TextIO | None = None,
        stage: str = "repositorycheck",
    ):
        self._path = report_path
        self._stream = stream
        self._stage = stage

    def emit(self, result: ReconciliationResult) -> list[ReportRecord]:
        """Report every problem of *result*; returns the records written."""
        stream = self._stream or sys.stderr
        pm = (
            result.platform.package_manager.value
            if result.platform and result.platform.package_manager
            else "package"
        )

        records = []
        for outcome in result.problems:
            message = render_message(outcome, pm)
            stream.write(message)

            if self._path is None or outcome.kind not in REPORTED_KINDS:
                continue
            record = ReportRecord(
                stage=self._stage,
                errtype=outcome.kind.value,
                repo=outcome.repo,
                error=message,
            )
            if _append(self._path, record):
                records.append(record)

        stream.flush()
        return records


def _append(path: Path, record: ReportRecord) -> bool:
    line = json.dumps(record.model_dump(mode="json", exclude_none=True), ensure_ascii=False)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError as e:
        logger.error("Failed to write failure report %s: %s", path, e)
        return False
    logger.debug("Report record written: %s/%s", record.errtype, record.repo)
    return True
