"""
Configuration loader — builds the run's Settings.

Precedence, lowest first: built-in defaults, an optional YAML file,
then ``REPOCHECK_*`` environment variables. CLI flags are applied on
top by the caller via ``Settings.model_copy(update=...)``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "REPOCHECK_CONFIG"

# env var → settings field
_ENV_FIELDS = {
    "REPOCHECK_ERROR_REPORT": "error_report",
    "REPOCHECK_SKIP_FLAG": "skip_flag",
    "REPOCHECK_LOG_LEVEL": "log_level",
    "REPOCHECK_LOG_FILE": "log_file",
    "REPOCHECK_COMMAND_TIMEOUT": "command_timeout",
}


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""


class Settings(BaseModel):
    """Everything a run needs to know about the host layout."""

    # ── Run control ──────────────────────────────────────────────
    skip_flag: Path = Path("/tmp/installer-skip-repository-check.flag")
    error_report: Path | None = None
    stage: str = "repositorycheck"
    command_timeout: float | None = 600

    # ── Host layout ──────────────────────────────────────────────
    os_release_path: Path = Path("/etc/os-release")
    debian_version_path: Path = Path("/etc/debian_version")
    yum_repos_dir: Path = Path("/etc/yum.repos.d")
    apt_dir: Path = Path("/etc/apt")
    backup_root: Path = Path("/tmp")
    system_python: str = "/usr/bin/python3"

    # ── Remediation sources ──────────────────────────────────────
    vendor_repo_glob: str = "PLESK_*"
    vendor_thirdparty_repo_glob: str = "PLESK_18_*-thirdparty"
    epel_release_url: str = (
        "https://dl.fedoraproject.org/pub/epel/epel-release-latest-{version}.noarch.rpm"
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = "WARNING"
    log_file: str | None = None


def _read_yaml(path: Path) -> dict:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Settings may sit at the top level or under a "repocheck" key
    section = data.get("repocheck", data)
    if not isinstance(section, dict):
        raise ConfigError(f"Expected 'repocheck' to be a mapping in {path}")
    return dict(section)


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from defaults, YAML and the environment.

    Args:
        path: Explicit YAML file. If None, ``REPOCHECK_CONFIG`` is consulted.
        environ: Environment mapping (default: ``os.environ``).

    Raises:
        ConfigError: If the file or any value is invalid.
    """
    env = os.environ if environ is None else environ

    if path is None and env.get(CONFIG_ENV_VAR):
        path = Path(env[CONFIG_ENV_VAR])

    data: dict = {}
    if path is not None:
        logger.debug("Loading settings from %s", path)
        data.update(_read_yaml(path))

    for var, field_name in _ENV_FIELDS.items():
        value = env.get(var)
        if value:
            data[field_name] = value

    if env.get("REPOCHECK_DEBUG"):
        data["log_level"] = "DEBUG"

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
