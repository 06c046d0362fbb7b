"""``launchledger snapshot show|clear`` — inspect or erase saved login items."""

from __future__ import annotations

import json
import sys

import click

from launchledger.cli.context import get_manager
from launchledger.core.reconcile import serialize_snapshot
from launchledger.exceptions import SnapshotError


@click.group("snapshot")
def snapshot_group() -> None:
    """Inspect the persisted login item snapshot."""


@snapshot_group.command("show")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text")
@click.pass_context
def snapshot_show(ctx: click.Context, output_format: str) -> None:
    """Print the saved login items and their last known state."""
    store = get_manager(ctx).snapshot_store
    snapshot = store.load() if store is not None else {}
    if output_format == "json":
        click.echo(json.dumps(serialize_snapshot(snapshot), indent=2, sort_keys=True))
        return
    from launchledger.cli.output import print_snapshot
    print_snapshot(snapshot)


@snapshot_group.command("clear")
@click.confirmation_option(prompt="Forget every saved login item state?")
@click.pass_context
def snapshot_clear(ctx: click.Context) -> None:
    """Delete the saved snapshot. Disabled login items are forgotten."""
    store = get_manager(ctx).snapshot_store
    if store is None:
        click.echo("No snapshot store configured.")
        return
    try:
        store.clear()
    except SnapshotError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo("Snapshot cleared.")
