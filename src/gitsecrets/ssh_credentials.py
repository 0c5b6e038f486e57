"""
SSH credential resolution for git subprocesses.

Priority, first match wins:

    1. explicit key path      GITSECRETS_SSH_KEY_PATH
    2. inline key material    SSH_PRIVATE_KEY (+ optional SSH_PUBLIC_KEY)
    3. ambient                ssh-agent / ~/.ssh/config, no override

The chosen identity reaches git only through ``GIT_SSH_COMMAND`` so it
never shows up in process listings as git arguments.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import GitEnvironment
from .errors import RepositoryError
from .models import SshKeySource

logger = logging.getLogger("gitsecrets.ssh_credentials")

PRIVATE_KEY_NAME = "identity"
PUBLIC_KEY_NAME = "identity.pub"

_CI_HOST_OPTIONS = "-o StrictHostKeyChecking=no -o UserKnownHostsFile=/dev/null"


@dataclass
class SshCredentialSpec:
    """The SSH identity one GitSyncManager uses.

    Attributes:
        source: Which rule of the priority chain resolved.
        key_path: Private key file, None for ambient.
        temp_dir: Directory holding materialized inline keys, if any.
    """

    source: SshKeySource
    key_path: Optional[Path] = None
    temp_dir: Optional[Path] = None

    @property
    def ssh_command(self) -> Optional[str]:
        """Value for GIT_SSH_COMMAND, or None to use ssh defaults."""
        if self.source == SshKeySource.AMBIENT or self.key_path is None:
            return None
        command = f"ssh -i {shlex.quote(str(self.key_path))} -o IdentitiesOnly=yes"
        if self.source == SshKeySource.INLINE:
            command = f"{command} {_CI_HOST_OPTIONS}"
        return command

    def git_env(self) -> dict[str, str]:
        """Environment overrides to pass to every git invocation."""
        command = self.ssh_command
        return {"GIT_SSH_COMMAND": command} if command else {}

    def cleanup(self) -> None:
        """Remove materialized key material. Safe to call repeatedly."""
        if self.temp_dir is not None and self.temp_dir.exists():
            logger.debug("Removing temporary SSH keys: %s", self.temp_dir)
            shutil.rmtree(self.temp_dir, ignore_errors=True)
        self.temp_dir = None


def _write_private(path: Path, content: str) -> None:
    if not content.endswith("\n"):
        content += "\n"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(path, 0o600)


def materialize_inline_keys(private_key: str, public_key: Optional[str] = None) -> SshCredentialSpec:
    """Write inline key material into a fresh owner-only directory.

    Args:
        private_key: Private key text.
        public_key: Optional matching public key text.

    Returns:
        SshCredentialSpec: INLINE spec owning the temporary directory.

    Raises:
        RepositoryError: If the key files cannot be written.
    """
    temp_dir = Path(tempfile.mkdtemp(prefix="gitsecrets_ssh_"))
    try:
        os.chmod(temp_dir, 0o700)
        key_path = temp_dir / PRIVATE_KEY_NAME
        _write_private(key_path, private_key)
        if public_key:
            _write_private(temp_dir / PUBLIC_KEY_NAME, public_key)
    except OSError as exc:
        shutil.rmtree(temp_dir, ignore_errors=True)
        raise RepositoryError(f"failed to write temporary SSH keys: {exc}") from exc

    logger.debug("Materialized inline SSH key in %s", temp_dir)
    return SshCredentialSpec(SshKeySource.INLINE, key_path=key_path, temp_dir=temp_dir)


def resolve_ssh_credentials(git_env: GitEnvironment) -> SshCredentialSpec:
    """Pick the SSH identity according to the priority chain."""
    if git_env.ssh_key_path:
        logger.debug("Using explicit SSH key: %s", git_env.ssh_key_path)
        return SshCredentialSpec(
            SshKeySource.EXPLICIT_PATH,
            key_path=Path(git_env.ssh_key_path).expanduser(),
        )

    if git_env.ssh_private_key:
        return materialize_inline_keys(git_env.ssh_private_key, git_env.ssh_public_key)

    logger.debug("Using ambient SSH configuration")
    return SshCredentialSpec(SshKeySource.AMBIENT)
