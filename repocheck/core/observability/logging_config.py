"""
Logging configuration — one setup call, made by the CLI at startup.

Every module logs through ``logging.getLogger(__name__)``; this module
only decides where records go and how they look.

Level precedence:
    --debug / -v / -q  >  REPOCHECK_LOG_LEVEL / REPOCHECK_DEBUG  >  WARNING

At the default level the console shows bare messages, because the
repository check runs inside an installer whose output the operator
reads directly: mirror migrations and skipped runs appear as plain
lines. More verbose levels add context.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

# level threshold → (format, datefmt), most verbose first
_CONSOLE_FORMATS: list[tuple[int, str, str | None]] = [
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
]
_CONSOLE_DEFAULT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def resolve_level(
    configured: str | None,
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> str:
    """Pick the console level from CLI flags, falling back to settings."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return configured or "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path of a log file receiving full-format records.
        log_file_level: Level of the log file (default: ``level``).
        stream: Console stream (default: stderr).

    A log file that cannot be opened is reported on the console and
    otherwise ignored.
    """
    console_level = _parse_level(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level, stream or sys.stderr))
    root.setLevel(console_level)

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logging.getLogger(__name__).warning("Cannot open log file %s: %s", log_file, e)
        else:
            fh.setLevel(file_level)
            fh.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
            root.addHandler(fh)
            root.setLevel(min(console_level, file_level))

    # A broken stream must not abort a run
    logging.raiseExceptions = False


def _console_handler(level: int, stream: TextIO) -> logging.Handler:
    fmt, datefmt = _CONSOLE_DEFAULT, None
    for threshold, threshold_fmt, threshold_datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            fmt, datefmt = threshold_fmt, threshold_datefmt
            break

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown names mean WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
