"""Setup command: init."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.panel import Panel

from .. import CONFIG_FILE_NAME, DEFAULT_BACKUP_COUNT, DEFAULT_BRANCH, DEFAULT_LOCAL_PATH
from ..config import SyncSettings, write_config_file
from ..errors import GitSecretsError
from ..secret_files import SecretFileIndex
from ._common import console, fail

GITIGNORE_NAME = ".gitignore"


def update_gitignore(directory: Path, entries: list[str]) -> list[str]:
    """Append missing entries to ``.gitignore`` in ``directory``.

    Returns:
        list[str]: The entries that were added.
    """
    gitignore = directory / GITIGNORE_NAME
    existing = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
    present = {line.strip() for line in existing.splitlines()}
    added = [e for e in entries if e not in present]
    if not added:
        return []

    prefix = "" if not existing or existing.endswith("\n") else "\n"
    block = prefix + "\n# gitsecrets\n" + "\n".join(added) + "\n"
    with gitignore.open("a", encoding="utf-8") as f:
        f.write(block)
    return added


def register_setup_commands(main: click.Group) -> None:
    """Register the init command."""

    @main.command()
    @click.option("--repo", "-r", required=True, help="SSH URL of the secrets repository.")
    @click.option("--branch", "-b", default=DEFAULT_BRANCH, show_default=True)
    @click.option("--path", "-d", "local_path", default=DEFAULT_LOCAL_PATH, show_default=True,
                  type=click.Path(), help="Local secrets directory.")
    @click.option("--force", "-f", is_flag=True, help="Overwrite an existing configuration.")
    def init(repo: str, branch: str, local_path: str, force: bool):
        """Set up gitsecrets in the current directory.

        Writes .gitsecretsrc, creates the secrets directory and keeps
        both out of the project's own Git history.

        Examples:

            gitsecrets init -r git@github.com:company/secrets.git
        """
        cwd = Path.cwd()
        config_path = cwd / CONFIG_FILE_NAME
        if config_path.exists() and not force:
            console.print(
                f"[yellow]{CONFIG_FILE_NAME} already exists.[/] Use --force to overwrite."
            )
            raise SystemExit(1)

        settings = SyncSettings(
            repo_url=repo,
            branch=branch,
            local_path=Path(local_path),
            backup_count=DEFAULT_BACKUP_COUNT,
        )
        try:
            write_config_file(config_path, settings)
            SecretFileIndex().ensure_directory(settings.local_path)
        except GitSecretsError as exc:
            fail(exc)

        ignore_entry = Path(local_path).as_posix().removeprefix("./").rstrip("/") + "/"
        try:
            added = update_gitignore(cwd, [ignore_entry, CONFIG_FILE_NAME])
        except OSError as exc:
            console.print(f"[yellow]Could not update {GITIGNORE_NAME}:[/] {exc}")
            added = []

        lines = [
            f"[bold green]Initialized[/] {CONFIG_FILE_NAME}",
            f"Repository: {repo}",
            f"Branch: {branch}",
            f"Secrets: [cyan]{local_path}[/]",
        ]
        if added:
            lines.append(f"Added to {GITIGNORE_NAME}: {', '.join(added)}")
        console.print(Panel("\n".join(lines), title="gitsecrets init", border_style="green"))
