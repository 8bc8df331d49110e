"""
Backed-up text rewrites of package-manager configuration.

A :class:`BackedUpRewrite` is a scoped operation over a set of config
files: ``backup()`` snapshots the whole config directory into a
timestamped directory, ``rewrite()`` applies line substitutions in
place, ``outcome()`` reports what happened. ``rewrite()`` refuses to
run before ``backup()``. Errors are collected on the outcome, never
raised.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Iterable

logger = logging.getLogger(__name__)

LineEdit = Callable[[str], str]


@dataclass
class RewriteOutcome:
    """What a rewrite did to the config directory."""

    changed_files: list[Path] = field(default_factory=list)
    backup_dir: Path | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changed_files)

    @property
    def ok(self) -> bool:
        return not self.errors


def regex_edit(pattern: str, replacement: str) -> LineEdit:
    """Line edit applying ``re.sub`` anchored to the whole line."""
    compiled = re.compile(pattern)
    return lambda line: compiled.sub(replacement, line)


def contains_word(path: Path, word: str) -> bool:
    """Whether *path* contains *word* delimited by non-word characters."""
    pattern = re.compile(rf"(?<!\w){re.escape(word)}(?!\w)")
    try:
        return pattern.search(path.read_text(encoding="utf-8", errors="replace")) is not None
    except OSError:
        return False


class BackedUpRewrite:
    """Rewrite files under *config_dir* after backing the directory up."""

    def __init__(
        self,
        config_dir: Path,
        files: Iterable[Path],
        backup_root: Path,
        backup_prefix: str | None = None,
    ):
        self._config_dir = config_dir
        self._files = sorted(files)
        self._backup_root = backup_root
        self._backup_prefix = backup_prefix or f"{config_dir.name}-{date.today().isoformat()}-"
        self._outcome = RewriteOutcome()
        self._backed_up = False

    def backup(self) -> Path | None:
        """Copy the config directory into a fresh timestamped directory."""
        try:
            self._backup_root.mkdir(parents=True, exist_ok=True)
            dest = Path(tempfile.mkdtemp(prefix=self._backup_prefix, dir=self._backup_root))
            shutil.copytree(self._config_dir, dest, symlinks=True, dirs_exist_ok=True)
        except OSError as e:
            self._outcome.errors.append(f"backup of {self._config_dir} failed: {e}")
            logger.warning("Backup of %s failed: %s", self._config_dir, e)
            return None
        self._outcome.backup_dir = dest
        self._backed_up = True
        logger.debug("Backed up %s → %s", self._config_dir, dest)
        return dest

    def rewrite(self, edits: list[LineEdit]) -> list[Path]:
        """Apply *edits* to every line of every file, in order."""
        if not self._backed_up:
            self._outcome.errors.append("rewrite attempted without a backup")
            return []

        for path in self._files:
            # surrogateescape keeps non-UTF-8 bytes intact through the rewrite
            try:
                original = path.read_text(encoding="utf-8", errors="surrogateescape")
            except OSError as e:
                self._outcome.errors.append(f"cannot read {path}: {e}")
                continue

            new_lines = []
            for line in original.splitlines(keepends=True):
                body = line.rstrip("\n")
                ending = line[len(body):]
                for edit in edits:
                    body = edit(body)
                new_lines.append(body + ending)
            updated = "".join(new_lines)

            if updated == original:
                continue
            try:
                path.write_text(updated, encoding="utf-8", errors="surrogateescape")
            except OSError as e:
                self._outcome.errors.append(f"cannot write {path}: {e}")
                continue
            self._outcome.changed_files.append(path)

        return list(self._outcome.changed_files)

    def outcome(self) -> RewriteOutcome:
        return self._outcome
