"""Package-manager backends: yum/dnf (RPM family) and apt."""

from repocheck.adapters.packages.apt import AptAdapter
from repocheck.adapters.packages.rpm import DnfAdapter, RpmAdapter, YumAdapter

__all__ = ["AptAdapter", "DnfAdapter", "RpmAdapter", "YumAdapter"]
