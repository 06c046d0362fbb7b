"""``launchledger export`` and ``launchledger backup ...``.

Usage::

    launchledger export ~/Desktop/startup.json
    launchledger backup create
    launchledger backup list
    launchledger backup show ~/Library/Application\\ Support/LaunchLedger/Backups/backup_....json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from launchledger.cli.context import get_backup_manager, get_manager, run_async
from launchledger.core.backup import StartupConfiguration
from launchledger.core.records.models import Category
from launchledger.exceptions import BackupError

_EXPORTED = (Category.LOGIN_ITEMS, Category.AGENTS, Category.DAEMONS)


def _capture(ctx: click.Context) -> StartupConfiguration:
    manager = get_manager(ctx)
    run_async(manager.refresh(_EXPORTED))
    store = manager.store
    return StartupConfiguration.capture(
        store.records(Category.LOGIN_ITEMS),
        store.records(Category.AGENTS),
        store.records(Category.DAEMONS),
    )


@click.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export_command(ctx: click.Context, path: Path) -> None:
    """Export the current configuration to PATH as JSON."""
    config = _capture(ctx)
    try:
        get_backup_manager(ctx).export_configuration(config, path)
    except BackupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Configuration exported to: {path}")


@click.group("backup")
def backup_group() -> None:
    """Create and inspect timestamped configuration backups."""


@backup_group.command("create")
@click.pass_context
def backup_create(ctx: click.Context) -> None:
    """Write a new timestamped backup."""
    config = _capture(ctx)
    try:
        target = get_backup_manager(ctx).create_backup(config)
    except BackupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Backup written to: {target}")


@backup_group.command("list")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.pass_context
def backup_list(ctx: click.Context, output_format: str) -> None:
    """List backups, newest first."""
    paths = get_backup_manager(ctx).list_backups()
    if output_format == "json":
        click.echo(json.dumps([str(p) for p in paths], indent=2))
        return
    from launchledger.cli.output import print_backups
    print_backups(paths)


@backup_group.command("show")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.pass_context
def backup_show(ctx: click.Context, path: Path, output_format: str) -> None:
    """Display the backup or export at PATH."""
    try:
        config = get_backup_manager(ctx).load_configuration(path)
    except BackupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    if output_format == "json":
        click.echo(config.to_json())
        return
    from launchledger.cli.output import print_configuration
    print_configuration(config)


@backup_group.command("delete")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.confirmation_option(prompt="Delete this backup?")
@click.pass_context
def backup_delete(ctx: click.Context, path: Path) -> None:
    """Delete the backup at PATH (must live in the backup directory)."""
    try:
        get_backup_manager(ctx).delete_backup(path)
    except BackupError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Deleted {path.name}")
