"""
Settings for one pull/push and the git environment.

Settings come from three places, highest priority first:

    explicit argument  >  .gitsecretsrc (YAML)  >  built-in default

The config file is looked up as the explicit ``--config`` path, then
``./.gitsecretsrc``, then ``~/.gitsecretsrc``.

Environment variables that influence git (SSH keys, full clone) are read
exactly once into a ``GitEnvironment`` and passed down explicitly.

Example .gitsecretsrc:

    repo_url: "git@github.com:company/secrets.git"
    branch: "main"
    local_path: "./secrets"
    backup_count: 3
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict

from . import (
    CONFIG_FILE_NAME,
    DEFAULT_BACKUP_COUNT,
    DEFAULT_BRANCH,
    DEFAULT_LOCAL_PATH,
)
from .errors import ConfigurationError

logger = logging.getLogger("gitsecrets.config")

ENV_SSH_KEY_PATH = "GITSECRETS_SSH_KEY_PATH"
ENV_SSH_PRIVATE_KEY = "SSH_PRIVATE_KEY"
ENV_SSH_PUBLIC_KEY = "SSH_PUBLIC_KEY"
ENV_FULL_CLONE = "GITSECRETS_FULL_CLONE"
ENV_PASSWORD = "GITSECRETS_PASSWORD"

_TRUTHY = {"1", "true", "yes", "on"}

SETTINGS_KEYS = ("repo_url", "branch", "local_path", "backup_count", "audit_log")


class SyncSettings(BaseModel):
    """Resolved settings for a single pull or push.

    Attributes:
        repo_url: SSH URL of the secrets repository.
        branch: Branch holding the encrypted artifacts.
        local_path: Local directory with plaintext secrets.
        backup_count: Backups to keep before a pull; 0 disables them.
        audit_log: Optional JSONL file receiving audit events.
    """

    model_config = ConfigDict(frozen=True)

    repo_url: Optional[str] = None
    branch: str = DEFAULT_BRANCH
    local_path: Path = Path(DEFAULT_LOCAL_PATH)
    backup_count: int = DEFAULT_BACKUP_COUNT
    audit_log: Optional[Path] = None


class GitEnvironment(BaseModel):
    """Git/SSH inputs taken from the process environment."""

    model_config = ConfigDict(frozen=True)

    ssh_key_path: Optional[str] = None
    ssh_private_key: Optional[str] = None
    ssh_public_key: Optional[str] = None
    full_clone: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GitEnvironment":
        """Read the git-related variables once.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.
        """
        env = os.environ if environ is None else environ
        return cls(
            ssh_key_path=env.get(ENV_SSH_KEY_PATH) or None,
            ssh_private_key=env.get(ENV_SSH_PRIVATE_KEY) or None,
            ssh_public_key=env.get(ENV_SSH_PUBLIC_KEY) or None,
            full_clone=env.get(ENV_FULL_CLONE, "").strip().lower() in _TRUTHY,
        )


def find_config_file(explicit: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Locate the config file to use.

    Args:
        explicit: Path given on the command line. Returned as-is.

    Returns:
        Path to the config file, or None if none exists.
    """
    if explicit:
        return Path(explicit).expanduser()
    for candidate in (Path.cwd() / CONFIG_FILE_NAME, Path.home() / CONFIG_FILE_NAME):
        if candidate.is_file():
            return candidate
    return None


def load_config_file(path: Union[str, Path]) -> dict[str, Any]:
    """Parse a .gitsecretsrc YAML file.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid YAML,
            or does not contain a mapping.
    """
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"failed to read configuration from {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"configuration in {path} must be a mapping")
    return data


def _coerce_backup_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        logger.warning(
            "Invalid backup_count %r, using default %d", value, DEFAULT_BACKUP_COUNT
        )
        return DEFAULT_BACKUP_COUNT
    return value


def resolve_settings(
    config_file: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> SyncSettings:
    """Merge explicit overrides over the config file over defaults.

    Overrides that are None do not replace file values.

    Args:
        config_file: Explicit config path; otherwise the usual lookup.
        **overrides: Any of repo_url, branch, local_path, backup_count,
            audit_log.

    Returns:
        SyncSettings: The frozen, merged settings.
    """
    merged: dict[str, Any] = {}

    path = find_config_file(config_file)
    if path is not None:
        if path.is_file():
            logger.debug("Loading configuration from %s", path)
            file_data = load_config_file(path)
            merged.update({k: v for k, v in file_data.items() if k in SETTINGS_KEYS and v is not None})
        elif config_file:
            raise ConfigurationError(f"configuration file not found: {path}")

    merged.update({k: v for k, v in overrides.items() if k in SETTINGS_KEYS and v is not None})

    if "backup_count" in merged:
        merged["backup_count"] = _coerce_backup_count(merged["backup_count"])

    try:
        return SyncSettings(**merged)
    except ValueError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc


def write_config_file(path: Union[str, Path], settings: SyncSettings) -> Path:
    """Write settings as a .gitsecretsrc YAML file.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    path = Path(path)
    data = {
        "repo_url": settings.repo_url,
        "branch": settings.branch,
        "local_path": settings.local_path.as_posix(),
        "backup_count": settings.backup_count,
    }
    body = "# gitsecrets configuration\n" + yaml.safe_dump(
        data, default_flow_style=False, sort_keys=False
    )
    try:
        path.write_text(body, encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"failed to write configuration to {path}: {exc}") from exc
    return path
