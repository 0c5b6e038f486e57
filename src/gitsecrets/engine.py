"""
Sync engine: the pull and push workflows.

Pull:
    1. Validate the password
    2. Back up the local secrets directory
    3. Clone and fast-forward the branch, read every *.enc artifact
    4. Verify, decrypt and write each artifact into the local directory
    5. Raise one IntegrityError listing every artifact that failed

Push:
    1. Validate the password and the local directory
    2. Collect secret files (nothing to do if there are none)
    3. Clone and fast-forward the branch
    4. Replace all artifacts with freshly encrypted ones
    5. Commit and push

Both paths record audit events and always clean up the working tree.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from .audit import (
    RESULT_FAILURE,
    RESULT_SUCCESS,
    RESULT_WARNING,
    audit_event,
    security_event,
)
from .backup import BackupStore
from .config import GitEnvironment, SyncSettings, resolve_settings
from .crypto import CryptoEngine
from .errors import (
    CryptoError,
    FileSystemError,
    GitSecretsError,
    IntegrityError,
    ValidationError,
)
from .git_sync import GitSyncManager
from .models import ArtifactPayload, EncryptedArtifact
from .runner import CommandRunner
from .secret_files import SecretFileIndex

logger = logging.getLogger("gitsecrets.engine")

COMMIT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def default_commit_message(now: Optional[datetime] = None) -> str:
    """Commit message used when the caller does not supply one."""
    return f"Update secrets: {(now or datetime.now()).strftime(COMMIT_TIME_FORMAT)}"


class SyncEngine:
    """Runs pull and push for one set of settings.

    Args:
        settings: Resolved repository, branch, directory and backup settings.
        password: Shared encryption password.
        git_env: Git/SSH environment. Read from the process environment
            when omitted.
        runner: Command runner handed to GitSyncManager.
    """

    def __init__(
        self,
        settings: SyncSettings,
        password: Optional[str],
        git_env: Optional[GitEnvironment] = None,
        runner: Optional[CommandRunner] = None,
    ) -> None:
        self.settings = settings
        self._password = password
        self._git_env = git_env or GitEnvironment.from_env()
        self._runner = runner
        self.files = SecretFileIndex()
        self.backups = BackupStore(settings.backup_count)

    @property
    def local_path(self) -> Path:
        return Path(self.settings.local_path)

    def _new_manager(self) -> GitSyncManager:
        return GitSyncManager(
            self.settings.repo_url, git_env=self._git_env, runner=self._runner
        )

    def _details(self, **extra: Any) -> dict[str, Any]:
        details = {
            "repo_url": self.settings.repo_url,
            "branch": self.settings.branch,
            "local_path": str(self.local_path),
        }
        details.update(extra)
        return details

    # ── pull ──────────────────────────────────────────────────────────────

    def pull(self) -> bool:
        """Fetch, decrypt and write every artifact into the local directory.

        Returns:
            bool: True once every artifact was written.

        Raises:
            CryptoError: Bad password.
            IntegrityError: One or more artifacts failed; the others were
                still written.
            RepositoryError: Clone, checkout or fast-forward failure.
            FileSystemError: Backup or local directory failure.
        """
        audit_log = self.settings.audit_log
        audit_event("pull_start", self._details(), audit_log)
        started = time.monotonic()
        logger.info("Starting pull from %s", self.settings.repo_url)

        manager: Optional[GitSyncManager] = None
        try:
            crypto = CryptoEngine(self._password)
            manager = self._new_manager()

            self.backups.snapshot(self.local_path)
            artifacts = manager.pull_encrypted_artifacts(self.settings.branch)
            self.files.ensure_directory(self.local_path)

            failures: list[tuple[str, str]] = []
            for artifact in artifacts:
                try:
                    self._restore_artifact(crypto, artifact)
                except (CryptoError, ValidationError, FileSystemError) as exc:
                    logger.error("Failed to decrypt %s: %s", artifact.name, exc)
                    failures.append((artifact.name, str(exc)))

            if failures:
                raise IntegrityError(failures)
        except GitSecretsError as exc:
            security_event(
                "pull", RESULT_FAILURE, time.monotonic() - started,
                self._details(error=str(exc)), audit_log,
            )
            raise
        finally:
            if manager is not None:
                manager.cleanup()

        security_event(
            "pull", RESULT_SUCCESS, time.monotonic() - started,
            self._details(files_count=len(artifacts)), audit_log,
        )
        logger.info("Pull complete: %d file(s) decrypted", len(artifacts))
        return True

    def _restore_artifact(self, crypto: CryptoEngine, artifact: EncryptedArtifact) -> None:
        if not crypto.verify_structure(artifact.content):
            raise CryptoError("invalid encrypted file structure")

        plaintext = crypto.decrypt(artifact.content)
        if not plaintext.strip():
            logger.warning("Decrypted file is empty: %s", artifact.name)

        relative = self.files.plaintext_name(artifact.name)
        target = self.files.resolve_inside(self.local_path, relative)
        self.files.write_file(target, plaintext)
        logger.debug("Decrypted %s -> %s", artifact.name, relative)

    # ── push ──────────────────────────────────────────────────────────────

    def push(self, commit_message: Optional[str] = None) -> bool:
        """Encrypt every local secret file and push the artifacts.

        Args:
            commit_message: Commit message. Defaults to a timestamped one.

        Returns:
            bool: True on success, including the no-files no-op.

        Raises:
            CryptoError: Bad password or encryption failure.
            FileSystemError: Local directory missing or unreadable.
            RepositoryError: Clone, fast-forward, commit or push failure.
        """
        audit_log = self.settings.audit_log
        audit_event("push_start", self._details(), audit_log)
        started = time.monotonic()
        logger.info("Starting push to %s", self.settings.repo_url)

        manager: Optional[GitSyncManager] = None
        try:
            crypto = CryptoEngine(self._password)
            if not self.local_path.is_dir():
                raise FileSystemError(
                    f"local secrets directory does not exist: {self.local_path}"
                )

            secret_files = self.files.collect(self.local_path)
            if not secret_files:
                logger.warning("No secret files found in %s", self.local_path)
                security_event(
                    "push", RESULT_WARNING, time.monotonic() - started,
                    self._details(files_count=0), audit_log,
                )
                return True

            manager = self._new_manager()
            manager.prepare_repository(self.settings.branch)

            payloads = [self._encrypt_file(crypto, path) for path in secret_files]
            manager.write_encrypted_artifacts(payloads)
            committed = manager.commit_and_push(
                commit_message or default_commit_message(), self.settings.branch
            )
        except GitSecretsError as exc:
            security_event(
                "push", RESULT_FAILURE, time.monotonic() - started,
                self._details(error=str(exc)), audit_log,
            )
            raise
        finally:
            if manager is not None:
                manager.cleanup()

        security_event(
            "push", RESULT_SUCCESS, time.monotonic() - started,
            self._details(files_count=len(payloads), committed=committed), audit_log,
        )
        logger.info("Push complete: %d file(s) encrypted", len(payloads))
        return True

    def _encrypt_file(self, crypto: CryptoEngine, path: Path) -> ArtifactPayload:
        relative = self.files.relative_path(path, self.local_path)
        logger.debug("Encrypting %s", relative)
        return ArtifactPayload(
            path=self.files.artifact_name(relative),
            content=crypto.encrypt(self.files.read_file(path)),
        )


# ── convenience entry points ──────────────────────────────────────────────


def pull_secrets(
    repo_url: Optional[str] = None,
    branch: Optional[str] = None,
    password: Optional[str] = None,
    local_path: Optional[Union[str, Path]] = None,
    backup_count: Optional[int] = None,
    config_file: Optional[Union[str, Path]] = None,
    git_env: Optional[GitEnvironment] = None,
    runner: Optional[CommandRunner] = None,
) -> bool:
    """Pull secrets with explicit arguments layered over the config file."""
    settings = resolve_settings(
        config_file,
        repo_url=repo_url,
        branch=branch,
        local_path=local_path,
        backup_count=backup_count,
    )
    return SyncEngine(settings, password, git_env=git_env, runner=runner).pull()


def push_secrets(
    repo_url: Optional[str] = None,
    branch: Optional[str] = None,
    password: Optional[str] = None,
    local_path: Optional[Union[str, Path]] = None,
    commit_message: Optional[str] = None,
    config_file: Optional[Union[str, Path]] = None,
    git_env: Optional[GitEnvironment] = None,
    runner: Optional[CommandRunner] = None,
) -> bool:
    """Push secrets with explicit arguments layered over the config file."""
    settings = resolve_settings(
        config_file,
        repo_url=repo_url,
        branch=branch,
        local_path=local_path,
    )
    engine = SyncEngine(settings, password, git_env=git_env, runner=runner)
    return engine.push(commit_message)
