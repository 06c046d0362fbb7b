"""LaunchLedger CLI — inventory, reconcile and score macOS autostart items.

Entry point for the ``launchledger`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    scan      — Read every autostart source and print the inventory.
    score     — Per-item and aggregate startup impact.
    toggle    — Enable or disable one item.
    remove    — Remove one item from the system.
    priority  — Reorder a login item or set an agent/daemon Nice value.
    export    — Write the current configuration to a JSON file.
    backup    — Create, list, show and delete timestamped backups.
    snapshot  — Inspect or clear the saved login item states.

Usage::

    launchledger scan
    launchledger scan --category agents --format json
    launchledger score
    launchledger toggle Dropbox --disable
    launchledger remove com.example.updater --category agents
    launchledger priority Dropbox --direction high
    launchledger priority com.example.updater --nice 10
    launchledger export ~/Desktop/startup.json
    launchledger backup create
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from launchledger import __version__
from launchledger.cli.backup_cmd import backup_group, export_command
from launchledger.cli.mutate_cmd import priority_command, remove_command, toggle_command
from launchledger.cli.scan import scan_command, score_command
from launchledger.cli.snapshot_cmd import snapshot_group
from launchledger.config import load_settings
from launchledger.exceptions import ConfigError


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default: $LAUNCHLEDGER_CONFIG or ~/.config/launchledger/config.yaml).",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """LaunchLedger: see what starts with your Mac and what it costs.

    Reads login items, launch agents, launch daemons and background items,
    keeps a stable record of login items across permission gaps, and
    estimates each item's startup impact.
    """
    _configure_logging(verbose)
    obj = ctx.ensure_object(dict)
    if "settings" not in obj:
        try:
            obj["settings"] = load_settings(config_path)
        except ConfigError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(2)


# Register all subcommands
cli.add_command(scan_command)
cli.add_command(score_command)
cli.add_command(toggle_command)
cli.add_command(remove_command)
cli.add_command(priority_command)
cli.add_command(export_command)
cli.add_command(backup_group)
cli.add_command(snapshot_group)
