"""
Adapters — package-manager bindings.

Public re-exports for convenient access.
"""

from repocheck.adapters.base import (
    AdapterUnavailable,
    AptFamilyAdapter,
    ListingCache,
    PackageManagerAdapter,
    RpmFamilyAdapter,
)
from repocheck.adapters.mock import MockPackageManager
from repocheck.adapters.registry import AdapterRegistry

__all__ = [
    "AdapterRegistry",
    "AdapterUnavailable",
    "AptFamilyAdapter",
    "ListingCache",
    "MockPackageManager",
    "PackageManagerAdapter",
    "RpmFamilyAdapter",
]
