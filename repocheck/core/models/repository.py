"""
Repository references — backend-specific repository identity.

RPM-family backends identify a repository by its repo id. APT has no
ids, so a repository is the (label, suite, component) triple taken
from an ``apt-cache policy`` release line, and lookups go through
regex patterns over the same triple.
"""

from __future__ import annotations

import re
from typing import Union

from pydantic import BaseModel, ConfigDict


class RpmRepo(BaseModel):
    """A yum/dnf repository, identified by its repo id."""

    model_config = ConfigDict(frozen=True)

    id: str

    def __str__(self) -> str:
        return self.id


class AptRepo(BaseModel):
    """An APT release as reported by ``apt-cache policy``."""

    model_config = ConfigDict(frozen=True)

    label: str
    suite: str
    component: str

    def __str__(self) -> str:
        return f"{self.label}/{self.suite}/{self.component}"


class AptRepoPattern(BaseModel):
    """Regex match over an :class:`AptRepo` triple.

    Each field is a regular expression that must match the whole
    value. ``None`` stands for "any non-empty value".
    """

    model_config = ConfigDict(frozen=True)

    label: str | None = None
    suite: str | None = None
    component: str | None = None

    @classmethod
    def exact(
        cls,
        label: str | None = None,
        suite: str | None = None,
        component: str | None = None,
    ) -> AptRepoPattern:
        """Build a pattern from literal values."""
        return cls(
            label=re.escape(label) if label is not None else None,
            suite=re.escape(suite) if suite is not None else None,
            component=re.escape(component) if component is not None else None,
        )

    def matches(self, repo: AptRepo) -> bool:
        return all(
            re.fullmatch(pattern or ".+", value) is not None
            for pattern, value in (
                (self.label, repo.label),
                (self.suite, repo.suite),
                (self.component, repo.component),
            )
        )

    def __str__(self) -> str:
        return "/".join(p or "*" for p in (self.label, self.suite, self.component))


RepositoryRef = Union[RpmRepo, AptRepo]
