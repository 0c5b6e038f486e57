"""Backup commands: restore and backups."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from ..backup import BackupStore, backup_timestamp
from ..errors import GitSecretsError
from ._common import console, display_path, fail, load_settings


def register_backup_commands(main: click.Group) -> None:
    """Register the restore and backups commands."""

    @main.command("restore")
    @click.argument("backup_path", type=click.Path())
    @click.option("--path", "-d", "local_path", default=None, type=click.Path(),
                  help="Local secrets directory to replace.")
    @click.pass_context
    def restore(ctx: click.Context, backup_path: str, local_path: Optional[str]):
        """Replace the secrets directory with a backup.

        The current directory contents are deleted, not merged.

        Examples:

            gitsecrets restore secrets_backup_20260224_101500
        """
        settings = load_settings(ctx, local_path=local_path)
        target = Path(settings.local_path)

        try:
            BackupStore(settings.backup_count).restore(backup_path, target)
        except GitSecretsError as exc:
            fail(exc)

        console.print(
            f"[bold green]Restored[/] [cyan]{display_path(target)}[/] from {backup_path}"
        )

    @main.command("backups")
    @click.option("--path", "-d", "local_path", default=None, type=click.Path(),
                  help="Local secrets directory.")
    @click.pass_context
    def backups(ctx: click.Context, local_path: Optional[str]):
        """List backups of the secrets directory, newest first."""
        settings = load_settings(ctx, local_path=local_path)
        found = BackupStore(settings.backup_count).list(settings.local_path)

        if not found:
            console.print("[dim]No backups found.[/]")
            return

        console.print(f"Backups in [cyan]{display_path(found[0].parent)}[/], newest first:")
        table = Table(show_header=True, header_style="bold")
        table.add_column("Backup", style="cyan", no_wrap=True)
        table.add_column("Created (UTC)", no_wrap=True)
        for path in found:
            stamp = backup_timestamp(path)
            table.add_row(path.name, stamp.strftime("%Y-%m-%d %H:%M:%S") if stamp else "-")
        console.print(table)
