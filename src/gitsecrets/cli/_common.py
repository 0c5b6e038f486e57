"""Shared utilities for all CLI command modules.

Provides the Rich console, logging setup and the helpers every command
uses to resolve settings and report domain errors.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, NoReturn, Optional

import click
from rich.console import Console

from ..config import SyncSettings, resolve_settings
from ..errors import GitSecretsError

console = Console()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging for a CLI run.

    Args:
        verbose: Log at DEBUG.
        quiet: Log errors only. Ignored when ``verbose`` is set.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


def config_file_from(ctx: click.Context) -> Optional[str]:
    """The ``--config`` value given to the main group, if any."""
    obj = ctx.find_root().obj or {}
    return obj.get("config_file")


def load_settings(ctx: click.Context, **overrides: Any) -> SyncSettings:
    """Resolve settings for a command, exiting 1 on a config error."""
    try:
        return resolve_settings(config_file_from(ctx), **overrides)
    except GitSecretsError as exc:
        fail(exc)


def fail(exc: BaseException) -> NoReturn:
    """Print a domain error in red and exit with status 1."""
    console.print(f"[red]Error:[/] {exc}")
    raise SystemExit(1)


def format_size(size: int) -> str:
    """Human-readable byte count."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1024 / 1024:.1f} MB"


def display_path(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)
