"""
Repository check use case — the full run behind ``repocheck check``.

Ties together the skip flag, platform detection, backend selection,
the reconciliation engine and the failure report:

    skip flag? → detect platform → select adapter → reconcile → emit

Detection problems and the skip flag yield a clean success: the check
must never block an installation because it could not look.
"""

from __future__ import annotations

import logging

from repocheck.adapters.registry import AdapterRegistry
from repocheck.adapters.shell.command import CommandRunner
from repocheck.core.config.loader import Settings
from repocheck.core.engine.reconciler import reconcile
from repocheck.core.models.outcome import ReconciliationResult, RunMode
from repocheck.core.persistence.report import ReportEmitter
from repocheck.core.services.platform import DetectionIncomplete, detect_platform

logger = logging.getLogger(__name__)


def run_repository_check(
    mode: RunMode = RunMode.CHECK,
    settings: Settings | None = None,
    registry: AdapterRegistry | None = None,
    runner: CommandRunner | None = None,
    emitter: ReportEmitter | None = None,
) -> ReconciliationResult:
    """Run one repository reconciliation.

    Args:
        mode: Check-only or install mode.
        settings: Run settings (default: built-in defaults).
        registry: Backend registry (default: yum/dnf/apt).
        runner: Command runner shared by the adapter.
        emitter: Report emitter (default: from settings).

    Returns:
        The run's ReconciliationResult, already reported.
    """
    settings = settings or Settings()

    if settings.skip_flag.exists():
        logger.warning("Repository check was skipped due to flag file.")
        return ReconciliationResult.skip(f"flag file {settings.skip_flag}", mode=mode.value)

    try:
        platform = detect_platform(settings.os_release_path, settings.debian_version_path)
    except DetectionIncomplete as e:
        logger.info("Platform detection incomplete, skipping: %s", e)
        return ReconciliationResult.skip(f"detection incomplete: {e}", mode=mode.value)

    registry = registry or AdapterRegistry()
    adapter = registry.create(platform, settings, runner)

    result = reconcile(platform, adapter, mode, settings)

    if emitter is None:
        emitter = ReportEmitter(settings.error_report, stage=settings.stage)
    emitter.emit(result)

    logger.info(
        "Repository check for %s finished with status %d (%d check(s), %d problem(s))",
        platform.key, result.exit_code, len(result.checks_run), len(result.problems),
    )
    return result
