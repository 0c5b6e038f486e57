"""
gitsecrets CLI: sync secret files through an encrypted Git repository.

The main Click group is defined here; each command family lives in its
own module and is attached through a ``register_*_commands`` function.

Entry point: gitsecrets.cli:main
"""

from __future__ import annotations

from typing import Optional

import click

from .. import __version__
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="gitsecrets")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option(
    "--config", "-c", "config_file", default=None, type=click.Path(),
    help="Configuration file (default: ./.gitsecretsrc, then ~/.gitsecretsrc).",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, quiet: bool, config_file: Optional[str]):
    """gitsecrets: encrypted secret files, shared through Git.

    Secret files are encrypted locally with AES-256-GCM and only the
    ciphertext ever reaches the repository.
    """
    setup_logging(verbose=verbose, quiet=quiet)
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


# ---------------------------------------------------------------------------
# Register all commands from modular files
# ---------------------------------------------------------------------------

from .setup import register_setup_commands
from .sync_cmd import register_sync_commands
from .status import register_status_commands
from .backup import register_backup_commands

register_setup_commands(main)
register_sync_commands(main)
register_status_commands(main)
register_backup_commands(main)
