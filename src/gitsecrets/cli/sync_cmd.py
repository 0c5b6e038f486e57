"""Sync commands: pull and push."""

from __future__ import annotations

from typing import Optional

import click
from rich.panel import Panel

from ..config import ENV_PASSWORD
from ..errors import GitSecretsError, IntegrityError
from ._common import console, display_path, fail, load_settings

password_option = click.option(
    "--password", "-p",
    envvar=ENV_PASSWORD,
    prompt="Encryption password",
    hide_input=True,
    help=f"Encryption password (or set {ENV_PASSWORD}).",
)
repo_option = click.option("--repo", "-r", default=None, help="SSH URL of the secrets repository.")
branch_option = click.option("--branch", "-b", default=None, help="Branch holding the secrets.")
path_option = click.option(
    "--path", "-d", "local_path", default=None, type=click.Path(),
    help="Local secrets directory.",
)


def register_sync_commands(main: click.Group) -> None:
    """Register the pull and push commands."""

    @main.command("pull")
    @repo_option
    @branch_option
    @password_option
    @path_option
    @click.pass_context
    def pull(
        ctx: click.Context,
        repo: Optional[str],
        branch: Optional[str],
        password: str,
        local_path: Optional[str],
    ):
        """Fetch and decrypt secrets into the local directory.

        The local directory is backed up first. Files that fail to
        decrypt are listed at the end; all others are still written.

        Examples:

            gitsecrets pull

            gitsecrets pull -r git@github.com:company/secrets.git -b production
        """
        from ..engine import SyncEngine

        settings = load_settings(ctx, repo_url=repo, branch=branch, local_path=local_path)
        console.print(f"\n[cyan]Pulling secrets from[/] {settings.repo_url or '(no repository)'}")

        try:
            SyncEngine(settings, password).pull()
        except IntegrityError as exc:
            console.print(f"[red]{len(exc.failures)} file(s) could not be decrypted:[/]")
            for name, reason in exc.failures:
                console.print(f"  [red]x[/] {name}: {reason}")
            raise SystemExit(1)
        except GitSecretsError as exc:
            fail(exc)

        console.print(Panel(
            f"[bold green]Secrets pulled[/]\n"
            f"Branch: {settings.branch}\n"
            f"Path: [cyan]{display_path(settings.local_path)}[/]",
            title="Pull Complete",
            border_style="green",
        ))

    @main.command("push")
    @repo_option
    @branch_option
    @password_option
    @path_option
    @click.option("--message", "-m", default=None, help="Commit message.")
    @click.pass_context
    def push(
        ctx: click.Context,
        repo: Optional[str],
        branch: Optional[str],
        password: str,
        local_path: Optional[str],
        message: Optional[str],
    ):
        """Encrypt local secrets and push them to the repository.

        Every .enc file in the repository is replaced by the current
        local set.

        Examples:

            gitsecrets push

            gitsecrets push -m "Rotate API keys"
        """
        from ..engine import SyncEngine

        settings = load_settings(ctx, repo_url=repo, branch=branch, local_path=local_path)
        console.print(f"\n[cyan]Pushing secrets to[/] {settings.repo_url or '(no repository)'}")

        try:
            SyncEngine(settings, password).push(message)
        except GitSecretsError as exc:
            fail(exc)

        console.print(Panel(
            f"[bold green]Secrets pushed[/]\n"
            f"Branch: {settings.branch}\n"
            f"Path: [cyan]{display_path(settings.local_path)}[/]",
            title="Push Complete",
            border_style="green",
        ))
