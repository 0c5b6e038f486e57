"""Local inspection commands: status and validate."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from ..backup import BackupStore, backup_timestamp
from ..errors import GitSecretsError
from ..secret_files import SecretFileIndex
from ._common import console, display_path, fail, format_size, load_settings


def register_status_commands(main: click.Group) -> None:
    """Register the status and validate commands."""

    @main.command()
    @click.option("--path", "-d", "local_path", default=None, type=click.Path(),
                  help="Local secrets directory.")
    @click.pass_context
    def status(ctx: click.Context, local_path: Optional[str]):
        """Show local secret files and available backups."""
        settings = load_settings(ctx, local_path=local_path)
        root = Path(settings.local_path)

        console.print()
        console.print(Panel(
            f"Repository: {settings.repo_url or '[dim]not configured[/]'}\n"
            f"Branch: {settings.branch}\n"
            f"Path: [cyan]{display_path(root)}[/]",
            title="gitsecrets",
            border_style="bright_blue",
        ))

        if not root.is_dir():
            console.print(f"[yellow]Secrets directory does not exist:[/] {root}")
            return

        index = SecretFileIndex()
        try:
            files = index.collect(root)
        except GitSecretsError as exc:
            fail(exc)

        if files:
            table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
            table.add_column("File", style="cyan")
            table.add_column("Size", justify="right")
            table.add_column("Check")
            for path in files:
                check = index.check_file_detailed(path)
                table.add_row(
                    index.relative_path(path, root),
                    format_size(check.size),
                    "[green]ok[/]" if check.valid else "[red]invalid[/]",
                )
            console.print(table)
        console.print(f"\n[bold]{len(files)}[/] secret file(s)")

        backups = BackupStore(settings.backup_count).list(root)
        if backups:
            console.print(f"\n[bold]Backups[/] ({len(backups)}):")
            for backup in backups:
                stamp = backup_timestamp(backup)
                when = stamp.strftime("%Y-%m-%d %H:%M:%S UTC") if stamp else "unknown time"
                console.print(f"  {backup.name}  [dim]{when}[/]")
        else:
            console.print("[dim]No backups.[/]")

    @main.command()
    @click.option("--path", "-d", "local_path", default=None, type=click.Path(),
                  help="Local secrets directory.")
    @click.pass_context
    def validate(ctx: click.Context, local_path: Optional[str]):
        """Check that every local secret file looks like its type.

        Exits with status 1 if any file fails or the directory is missing.
        """
        settings = load_settings(ctx, local_path=local_path)
        root = Path(settings.local_path)

        index = SecretFileIndex()
        try:
            files = index.collect(root)
        except GitSecretsError as exc:
            fail(exc)

        invalid = 0
        for path in files:
            relative = index.relative_path(path, root)
            check = index.check_file_detailed(path)
            if check.valid:
                console.print(f"  [green]ok[/] {relative}")
                continue
            invalid += 1
            if not check.non_empty:
                reason = "empty file"
            elif check.error:
                reason = check.error
            else:
                reason = "content does not match file type"
            console.print(f"  [red]x[/] {relative}: {reason}")

        if invalid:
            console.print(f"\n[red]{invalid} of {len(files)} file(s) failed validation[/]")
            raise SystemExit(1)
        console.print(f"\n[green]All {len(files)} file(s) valid[/]")
