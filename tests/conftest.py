"""Shared test fixtures for gitsecrets."""

from __future__ import annotations

import shutil
from dataclasses import replace
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

import pytest

from gitsecrets.config import GitEnvironment
from gitsecrets.runner import CommandResult

PASSWORD = "correct horse battery"
REPO_URL = "git@github.com:company/secrets.git"


def ok(stdout: str = "") -> CommandResult:
    """A successful command result."""
    return CommandResult((), 0, stdout, "")


def failed(stderr: str, returncode: int = 1) -> CommandResult:
    """A failed command result."""
    return CommandResult((), returncode, "", stderr)


class FakeGitRunner:
    """CommandRunner that answers git calls from a script.

    Unscripted commands succeed with empty output, except for the
    defaults below. When ``remote`` is set, a successful clone copies it
    into the working tree and a successful push copies the working
    tree's ``.enc`` files back.
    """

    def __init__(self, remote: Optional[Path] = None) -> None:
        self.remote = remote
        self.calls: list[tuple[str, ...]] = []
        self.envs: list[dict[str, str]] = []
        self.cwds: list[Optional[str]] = []
        self.scripted: dict[tuple[str, ...], list[CommandResult]] = {}
        self.defaults: dict[tuple[str, ...], CommandResult] = {
            ("rev-parse",): failed("fatal: Needed a single revision", 128),
            ("status", "--porcelain"): ok(" M secrets.json.enc\n"),
            ("config", "--get", "user.name"): ok("Test User\n"),
            ("config", "--get", "user.email"): ok("test@example.com\n"),
        }

    def script(self, *prefix: str, results: Sequence[CommandResult]) -> None:
        """Queue results for calls whose arguments start with ``prefix``."""
        self.scripted.setdefault(tuple(prefix), []).extend(results)

    def _lookup(self, args: tuple[str, ...]) -> CommandResult:
        scripted = [p for p, queue in self.scripted.items() if queue and args[:len(p)] == p]
        if scripted:
            return self.scripted[max(scripted, key=len)].pop(0)
        defaults = [p for p in self.defaults if args[:len(p)] == p]
        if defaults:
            return self.defaults[max(defaults, key=len)]
        return ok()

    def run(
        self,
        argv: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        args = tuple(argv[1:])
        self.calls.append(args)
        self.envs.append(dict(env or {}))
        self.cwds.append(str(cwd) if cwd else None)

        result = replace(self._lookup(args), argv=tuple(argv))
        if result.ok and self.remote is not None:
            if args[0] == "clone":
                shutil.copytree(self.remote, args[-1], dirs_exist_ok=True)
            elif args[0] == "push":
                self._publish(Path(cwd))
        return result

    def _publish(self, work_tree: Path) -> None:
        for old in self.remote.rglob("*.enc"):
            old.unlink()
        for artifact in work_tree.rglob("*.enc"):
            if ".git" in artifact.relative_to(work_tree).parts:
                continue
            target = self.remote / artifact.relative_to(work_tree)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(artifact, target)

    def commands(self) -> list[str]:
        """Calls as space-joined strings, for readable assertions."""
        return [" ".join(c) for c in self.calls]


@pytest.fixture
def remote_repo(tmp_path: Path) -> Path:
    """Directory standing in for the remote repository contents."""
    remote = tmp_path / "remote"
    remote.mkdir()
    return remote


@pytest.fixture
def fake_git(remote_repo: Path) -> FakeGitRunner:
    """Fake git wired to ``remote_repo``."""
    return FakeGitRunner(remote=remote_repo)


@pytest.fixture
def git_env() -> GitEnvironment:
    """Ambient SSH, shallow clone; independent of the real environment."""
    return GitEnvironment()


@pytest.fixture
def secrets_dir(tmp_path: Path) -> Path:
    """A local secrets directory with a few realistic files."""
    root = tmp_path / "secrets"
    (root / "certs").mkdir(parents=True)
    (root / "config.json").write_text('{"api_key": "abc123"}')
    (root / "certs" / "dev.cer").write_bytes(
        b"-----BEGIN CERTIFICATE-----\nMIIB\n-----END CERTIFICATE-----\n"
    )
    (root / "notes.txt").write_text("plain notes")
    return root
