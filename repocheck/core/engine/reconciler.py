"""
Reconciliation engine — runs a platform's policy and aggregates it.

Flow:
    platform → lookup policy → run checks in order → aggregate

Checks run strictly in declared order and every one of them runs, so
a single pass reports the complete set of problems. The one exception
is a gate check coming back fatal, which stops its policy. Outcomes
are OR-combined into the result; nothing downgrades an earlier fatal.
"""

from __future__ import annotations

import logging

from repocheck.adapters.base import AdapterUnavailable, PackageManagerAdapter
from repocheck.core.config.loader import Settings
from repocheck.core.models.outcome import (
    CheckOutcome,
    ErrorKind,
    ReconciliationResult,
    RunMode,
    Status,
)
from repocheck.core.models.platform import PlatformInfo
from repocheck.core.services.checks import CheckContext
from repocheck.core.services.policies import PolicyCheck, PolicyEntry, lookup_policy

logger = logging.getLogger(__name__)

_MARKERS = {Status.OK: "✓", Status.WARN: "⚠", Status.FATAL: "✗"}


def run_check(check: PolicyCheck, ctx: CheckContext) -> list[CheckOutcome]:
    """Run one check, turning backend failure into a fatal outcome."""
    try:
        outcomes = check.run(ctx)
    except AdapterUnavailable as e:
        logger.error("%s: %s unavailable: %s", check.name, ctx.adapter.name, e)
        outcomes = [CheckOutcome.fatal(ErrorKind.ADAPTER_UNAVAILABLE, detail=str(e))]

    for outcome in outcomes:
        if not outcome.check:
            outcome.check = check.name
    return outcomes


def reconcile(
    platform: PlatformInfo,
    adapter: PackageManagerAdapter | None,
    mode: RunMode = RunMode.CHECK,
    settings: Settings | None = None,
    policies: dict[str, PolicyEntry] | None = None,
) -> ReconciliationResult:
    """Reconcile the host's repositories against its policy.

    Args:
        platform: Detected platform.
        adapter: Backend for the platform (None if it has none).
        mode: ``RunMode.INSTALL`` turns some warnings into failures.
        settings: Run settings handed to checks.
        policies: Override of the policy table.

    Returns:
        ReconciliationResult; status OK when no policy applies.
    """
    result = ReconciliationResult(mode=mode.value, platform=platform)

    entry = lookup_policy(platform, policies)
    if entry is None:
        logger.info("No repository policy for %s, nothing to check", platform.key)
        return result
    result.policy_key = entry.key

    if adapter is None:
        result.skipped = f"no package manager backend for {platform.key}"
        logger.info("Policy %s found but %s", entry.key, result.skipped)
        return result

    ctx = CheckContext(
        platform=platform,
        adapter=adapter,
        mode=mode,
        settings=settings or Settings(),
    )

    for check in entry.checks:
        if check.install_only and mode is not RunMode.INSTALL:
            logger.debug("Skipping %s outside install mode", check.name)
            continue

        outcomes = run_check(check, ctx)
        result.checks_run.append(check.name)
        for outcome in outcomes:
            result.add(outcome)

        status = Status.OK
        for outcome in outcomes:
            status |= outcome.status
        marker = _MARKERS[Status.FATAL if status & Status.FATAL else status]
        logger.info("%s %s:%s", marker, entry.key, check.name)

        if check.gate and status & Status.FATAL:
            result.short_circuited = True
            logger.info("Gate %s failed, skipping remaining checks", check.name)
            break

    return result
