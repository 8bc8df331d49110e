"""
Command runner — the single place where package-manager processes run.

Backends never call ``subprocess`` directly: they go through a
:class:`CommandRunner`, which captures output, applies the timeout and
turns every failure into a :class:`CommandResult`. It never raises.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from typing import Sequence

logger = logging.getLogger(__name__)

# Exit codes used for failures that never reached the process
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass
class CommandResult:
    """Outcome of one external command."""

    command: list[str]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        return self.stdout.splitlines()

    def describe(self) -> str:
        """One-line failure summary for logs and reports."""
        if self.ok:
            return "ok"
        reason = self.error or self.stderr.strip() or f"exit {self.returncode}"
        return f"'{' '.join(self.command)}' failed: {reason.splitlines()[-1]}"


@dataclass
class CommandRunner:
    """Run commands synchronously, one at a time.

    Args:
        timeout: Seconds before a command is abandoned (None: no limit).
        env_overrides: Variables added to every command's environment.
    """

    timeout: float | None = 600
    env_overrides: dict[str, str] = field(default_factory=lambda: {"LC_ALL": "C"})
    history: list[list[str]] = field(default_factory=list)

    def run(
        self,
        cmd: Sequence[str],
        *,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run *cmd* and capture its output."""
        cmd = list(cmd)
        self.history.append(cmd)

        full_env = os.environ.copy()
        full_env.update(self.env_overrides)
        if env:
            full_env.update(env)
        full_env.pop("GREP_OPTIONS", None)

        logger.debug("Executing: %s", " ".join(cmd))
        start = time.monotonic()

        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=full_env,
            )
        except FileNotFoundError:
            return CommandResult(
                command=cmd,
                returncode=EXIT_NOT_FOUND,
                error=f"command not found: {cmd[0]}",
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=cmd,
                returncode=EXIT_TIMEOUT,
                error=f"timed out after {self.timeout}s",
            )
        except OSError as e:
            logger.error("Cannot execute %s: %s", cmd[0], e)
            return CommandResult(command=cmd, returncode=EXIT_NOT_FOUND, error=str(e))

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result = CommandResult(
            command=cmd,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            elapsed_ms=elapsed_ms,
        )
        if not result.ok:
            logger.debug("%s (%dms)", result.describe(), elapsed_ms)
        return result
