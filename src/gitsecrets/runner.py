"""
Command runner: the only place gitsecrets starts subprocesses.

GitSyncManager talks to git exclusively through the ``CommandRunner``
protocol, so tests can script git's answers without a real repository.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence, Union

logger = logging.getLogger("gitsecrets.runner")

COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one finished command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stderr if present, otherwise stdout, stripped."""
        return (self.stderr.strip() or self.stdout.strip())


class CommandRunner(Protocol):
    """Runs argv in a working directory with extra environment variables."""

    def run(
        self,
        argv: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        ...


class SubprocessRunner:
    """CommandRunner backed by ``subprocess.run``.

    ``env`` is layered over the current process environment. A missing
    executable is reported as exit status 127 instead of an exception.
    """

    def run(
        self,
        argv: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        argv = tuple(str(a) for a in argv)
        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        try:
            proc = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                env=full_env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            logger.debug("Could not start %s: %s", argv[0], exc)
            return CommandResult(argv, COMMAND_NOT_FOUND, "", str(exc))

        return CommandResult(argv, proc.returncode, proc.stdout or "", proc.stderr or "")
