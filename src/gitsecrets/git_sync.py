"""
Git synchronization for encrypted artifacts.

A GitSyncManager owns one disposable clone of the secrets repository in
a private temporary directory. It brings a branch up to date strictly by
fast-forward, hands out or replaces the ``*.enc`` artifacts, commits and
pushes, and removes every piece of temporary state on cleanup.

Pull path:  clone -> checkout branch -> fetch + pull --ff-only -> read *.enc
Push path:  clone -> checkout branch -> fetch + pull --ff-only
            -> replace *.enc -> add -A -> commit -> push

Shallow clones can refuse a fast-forward for lack of history; the
manager then runs ``fetch --unshallow`` once and retries the pull once.
Diverged histories are never merged: the operation fails instead.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Any, Iterable, Optional

from . import ARTIFACT_SUFFIX, DEFAULT_BRANCH
from .config import GitEnvironment
from .errors import RepositoryError
from .models import ArtifactPayload, EncryptedArtifact, GitState
from .runner import CommandResult, CommandRunner, SubprocessRunner
from .secret_files import SecretFileIndex
from .ssh_credentials import SshCredentialSpec, resolve_ssh_credentials

logger = logging.getLogger("gitsecrets.git_sync")

SSH_URL_PATTERN = re.compile(r"[\w\-.]+@[\w\-.]+:[\w\-./]+\.git")

_UNSET = object()

ACCESS_ADVICE = "Hint: check repository access, the branch name and your SSH settings."
IDENTITY_ADVICE = (
    "git user.name and user.email must be configured. Set them with: "
    'git config --global user.name "Your Name"; '
    'git config --global user.email "you@example.com"'
)


class GitSyncManager:
    """Clones, updates and pushes one secrets repository branch.

    Args:
        repo_url: SSH URL in ``user@host:path.git`` form.
        git_env: Git/SSH environment inputs. Read from the process
            environment when omitted.
        runner: Command runner for git. Defaults to real subprocesses.

    Raises:
        RepositoryError: If the URL is empty or not an SSH URL, or git is
            not available.
    """

    def __init__(
        self,
        repo_url: Optional[str],
        git_env: Optional[GitEnvironment] = None,
        runner: Optional[CommandRunner] = None,
    ) -> None:
        self.repo_url = "" if repo_url is None else str(repo_url)
        self._git_env = git_env or GitEnvironment.from_env()
        self._runner = runner or SubprocessRunner()
        self.work_tree: Optional[Path] = None
        self.state = GitState.UNINITIALIZED
        self._unshallowed = False

        self._validate_repo_url()
        self._check_git_available()
        self.credentials: SshCredentialSpec = resolve_ssh_credentials(self._git_env)
        self._env = self.credentials.git_env()

    def __enter__(self) -> "GitSyncManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    # ── public operations ─────────────────────────────────────────────────

    def pull_encrypted_artifacts(self, branch: str = DEFAULT_BRANCH) -> list[EncryptedArtifact]:
        """Bring ``branch`` up to date and return every artifact on it.

        Returns:
            list[EncryptedArtifact]: Sorted by name; content is raw bytes.

        Raises:
            RepositoryError: On clone, checkout, fast-forward or read failure.
        """
        logger.info("Cloning repository: %s", self.repo_url)
        self._sync_branch(branch)
        artifacts = self._collect_artifacts()
        logger.info("Found %d encrypted file(s)", len(artifacts))
        return artifacts

    def prepare_repository(self, branch: str = DEFAULT_BRANCH) -> None:
        """Bring ``branch`` up to date before writing artifacts.

        Raises:
            RepositoryError: On clone, checkout or fast-forward failure.
        """
        logger.info("Preparing repository branch %s for writing", branch)
        self._sync_branch(branch)

    def write_encrypted_artifacts(self, files: Iterable[ArtifactPayload]) -> None:
        """Replace the artifact set in the working tree.

        Every existing ``*.enc`` file in the tree is deleted first, then
        each payload is written to its relative path.

        Raises:
            ValidationError: If a payload path is unsafe.
            RepositoryError: If the tree is not prepared or a write fails.
        """
        work_tree = self._require_work_tree()
        files = list(files)
        logger.info("Writing %d encrypted file(s)", len(files))

        try:
            self._purge_artifacts(work_tree)
            for payload in files:
                target = SecretFileIndex.resolve_inside(work_tree, payload.path)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(payload.content, encoding="utf-8")
                logger.debug("Wrote %s", payload.path)
        except OSError as exc:
            logger.error("Failed to write encrypted files: %s", exc)
            raise RepositoryError(f"failed to write encrypted files: {exc}") from exc

    def commit_and_push(self, message: str, branch: str = DEFAULT_BRANCH) -> bool:
        """Stage everything, commit and push to ``origin/<branch>``.

        Returns:
            bool: True if a commit was pushed, False if there was nothing
            to commit.

        Raises:
            RepositoryError: If author identity is missing or git fails.
        """
        self._require_work_tree()
        logger.info("Committing and pushing to branch: %s", branch)

        self._git("add", "-A")
        self.state = GitState.STAGED

        status = self._git("status", "--porcelain")
        if not status.stdout.strip():
            logger.info("No changes to commit")
            return False

        self._ensure_author_identity()
        self._git("commit", "-m", message)
        self.state = GitState.COMMITTED
        logger.debug("Created commit: %s", message)

        self._git("push", "origin", branch)
        self.state = GitState.PUSHED
        logger.info("Changes pushed to origin/%s", branch)
        return True

    def cleanup(self) -> None:
        """Remove the working tree and temporary SSH keys.

        Idempotent and tolerant of a partially created tree.
        """
        if self.work_tree is not None:
            if self.work_tree.exists():
                logger.debug("Removing working tree: %s", self.work_tree)
                try:
                    shutil.rmtree(self.work_tree)
                except OSError as exc:
                    logger.warning("Could not fully remove %s: %s", self.work_tree, exc)
            self.work_tree = None
        self.credentials.cleanup()
        self.state = GitState.CLEANED

    # ── branch synchronization ────────────────────────────────────────────

    def _sync_branch(self, branch: str) -> None:
        if not branch:
            raise RepositoryError("branch name must not be empty")
        try:
            self._clone()
            self._checkout_branch(branch)
            self._ensure_fast_forward(branch)
        except OSError as exc:
            logger.error("Repository preparation failed: %s", exc)
            raise RepositoryError(f"failed to prepare repository: {exc}") from exc

    def _clone(self) -> None:
        if self.work_tree is not None:
            return

        self.work_tree = Path(tempfile.mkdtemp(prefix="gitsecrets_repo_"))
        logger.debug("Created working tree: %s", self.work_tree)

        args = ["clone", "--quiet"]
        if not self._git_env.full_clone:
            args += ["--depth", "1", "--no-single-branch"]
        args += [self.repo_url, str(self.work_tree)]
        self._git(*args, cwd=None)

        self.state = GitState.CLONED
        logger.debug("Repository cloned")

    def _checkout_branch(self, branch: str) -> None:
        logger.debug("Checking out branch: %s", branch)

        local = self._git("rev-parse", "--verify", branch, allow_failure=True)
        if local.ok and local.stdout.strip():
            self._git("checkout", branch)
        else:
            tracking = self._git(
                "checkout", "-b", branch, "--track", f"origin/{branch}",
                allow_failure=True,
            )
            if not tracking.ok:
                raise RepositoryError(
                    f"branch '{branch}' not found in repository: {tracking.output}"
                )
        self.state = GitState.BRANCH_READY

    def _ensure_fast_forward(self, branch: str) -> None:
        self._git("fetch", "origin", branch)

        pull = self._git("pull", "--ff-only", "origin", branch, allow_failure=True)
        if pull.ok:
            self.state = GitState.SYNCED
            return

        if self._unshallowed:
            raise RepositoryError(f"git pull --ff-only failed: {pull.output}")

        logger.debug("Fast-forward failed, retrying after fetch --unshallow")
        unshallow = self._git("fetch", "--unshallow", allow_failure=True)
        self._unshallowed = True
        if not unshallow.ok:
            raise RepositoryError(f"git pull --ff-only failed: {pull.output}")

        retry = self._git("pull", "--ff-only", "origin", branch, allow_failure=True)
        if not retry.ok:
            raise RepositoryError(
                f"could not fast-forward branch '{branch}': {retry.output}"
            )
        self.state = GitState.SYNCED

    # ── working tree helpers ──────────────────────────────────────────────

    def _require_work_tree(self) -> Path:
        if self.work_tree is None or self.state in (GitState.UNINITIALIZED, GitState.CLEANED):
            raise RepositoryError("repository is not prepared; call prepare_repository first")
        return self.work_tree

    @staticmethod
    def _iter_artifacts(work_tree: Path) -> Iterable[Path]:
        for dirpath, dirnames, filenames in os.walk(work_tree):
            dirnames[:] = [d for d in dirnames if d != ".git"]
            for name in filenames:
                if name.endswith(ARTIFACT_SUFFIX):
                    yield Path(dirpath) / name

    def _collect_artifacts(self) -> list[EncryptedArtifact]:
        work_tree = self._require_work_tree()
        artifacts = []
        try:
            for path in self._iter_artifacts(work_tree):
                if not path.is_file():
                    continue
                artifacts.append(
                    EncryptedArtifact(
                        name=SecretFileIndex.relative_path(path, work_tree),
                        content=path.read_bytes(),
                    )
                )
        except OSError as exc:
            raise RepositoryError(f"failed to read encrypted files: {exc}") from exc
        return sorted(artifacts, key=lambda a: a.name)

    def _purge_artifacts(self, work_tree: Path) -> None:
        logger.debug("Removing existing %s files", ARTIFACT_SUFFIX)
        for path in list(self._iter_artifacts(work_tree)):
            path.unlink()
            logger.debug("Removed %s", path.name)

    def _ensure_author_identity(self) -> None:
        name = self._git("config", "--get", "user.name", allow_failure=True)
        email = self._git("config", "--get", "user.email", allow_failure=True)
        if not name.stdout.strip() or not email.stdout.strip():
            raise RepositoryError(IDENTITY_ADVICE)

    # ── git plumbing ──────────────────────────────────────────────────────

    def _validate_repo_url(self) -> None:
        if not self.repo_url:
            raise RepositoryError("repository URL must not be empty")
        if not SSH_URL_PATTERN.fullmatch(self.repo_url):
            raise RepositoryError(
                "only SSH repository URLs are supported (git@host:repo.git)"
            )

    def _check_git_available(self) -> None:
        result = self._runner.run(["git", "--version"])
        if not result.ok:
            raise RepositoryError("git is not installed or not available on PATH")

    def _git(self, *args: str, cwd: Any = _UNSET, allow_failure: bool = False) -> CommandResult:
        """Run one git command in the working tree.

        Raises:
            RepositoryError: On non-zero exit unless ``allow_failure``.
        """
        argv = ["git", *args]
        workdir = self.work_tree if cwd is _UNSET else cwd
        logger.debug("Running: %s", " ".join(argv))

        result = self._runner.run(argv, cwd=workdir, env=self._env)
        if result.ok:
            return result

        logger.debug("Exit code %d\nstderr: %s", result.returncode, result.stderr.strip())
        if allow_failure:
            return result

        message = "\n".join(part for part in (result.output, ACCESS_ADVICE) if part)
        raise RepositoryError(message)
