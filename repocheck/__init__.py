"""repocheck — reconcile OS package repositories with installer policy."""

__version__ = "0.1.0"
