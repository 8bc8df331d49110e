"""
Domain models — pydantic types for repository reconciliation.

All models are re-exported here for convenient access:

    from repocheck.core.models import PlatformInfo, CheckOutcome, ReconciliationResult
"""

from repocheck.core.models.outcome import (
    REPORTED_KINDS,
    CheckOutcome,
    ErrorKind,
    ReconciliationResult,
    RunMode,
    Status,
)
from repocheck.core.models.platform import ARCH_MAP, PackageManagerKind, PlatformInfo
from repocheck.core.models.repository import (
    AptRepo,
    AptRepoPattern,
    RepositoryRef,
    RpmRepo,
)

__all__ = [
    "ARCH_MAP",
    "AptRepo",
    "AptRepoPattern",
    "CheckOutcome",
    "ErrorKind",
    "PackageManagerKind",
    "PlatformInfo",
    "REPORTED_KINDS",
    "ReconciliationResult",
    "RepositoryRef",
    "RunMode",
    "RpmRepo",
    "Status",
]
