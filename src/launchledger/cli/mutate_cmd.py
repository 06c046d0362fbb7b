"""``launchledger toggle|remove|priority`` — change the live system.

Every command goes through ``InventoryManager.apply``, which serialises the
change with the category's refresh and re-reads the category afterwards.

Exit Codes:
    0 — The change was applied.
    1 — The change failed; the error is printed verbatim to stderr.
"""

from __future__ import annotations

import sys

import click

from launchledger.cli.context import CATEGORY_CHOICE, get_manager, run_async
from launchledger.core.records.models import Category
from launchledger.exceptions import MutationError
from launchledger.inventory import Mutation
from launchledger.mutators import MutationAction, PriorityDirection


def _apply(ctx: click.Context, mutation: Mutation) -> None:
    manager = get_manager(ctx)
    try:
        result = run_async(manager.apply(mutation))
    except MutationError as exc:
        click.echo(f"Error: {exc.details()}", err=True)
        sys.exit(1)
    from launchledger.cli.output import print_mutation
    print_mutation(result)
    sys.exit(0)


@click.command("toggle")
@click.argument("identity_key")
@click.option("--category", type=CATEGORY_CHOICE, default=Category.LOGIN_ITEMS.value, show_default=True)
@click.option(
    "--enable/--disable", "enable",
    default=None,
    help="Target state. Default: flip the current state.",
)
@click.pass_context
def toggle_command(ctx: click.Context, identity_key: str, category: str, enable: bool | None) -> None:
    """Enable or disable the item identified by IDENTITY_KEY."""
    cat = Category(category)
    if enable is None:
        manager = get_manager(ctx)
        run_async(manager.refresh([cat]))
        record = manager.store.find(cat, identity_key)
        if record is None:
            click.echo(f"Error: no {cat.heading.lower()} entry {identity_key!r}", err=True)
            sys.exit(1)
        enable = not record.enabled
    action = MutationAction.ENABLE if enable else MutationAction.DISABLE
    _apply(ctx, Mutation(category=cat, identity_key=identity_key, action=action))


@click.command("remove")
@click.argument("identity_key")
@click.option("--category", type=CATEGORY_CHOICE, required=True)
@click.confirmation_option(prompt="Remove this item from the system?")
@click.pass_context
def remove_command(ctx: click.Context, identity_key: str, category: str) -> None:
    """Remove the item identified by IDENTITY_KEY.

    Agents and daemons are unloaded and their declaration file deleted.
    System locations are protected and refused.
    """
    _apply(ctx, Mutation(
        category=Category(category), identity_key=identity_key, action=MutationAction.REMOVE,
    ))


@click.command("priority")
@click.argument("identity_key")
@click.option(
    "--direction",
    type=click.Choice([d.value for d in PriorityDirection]),
    default=None,
    help="Move a login item to the beginning (high) or end (low) of the launch order.",
)
@click.option(
    "--nice",
    type=click.IntRange(-20, 20),
    default=None,
    help="Set the Nice process priority of an agent or daemon.",
)
@click.option("--category", type=CATEGORY_CHOICE, default=None)
@click.pass_context
def priority_command(
    ctx: click.Context,
    identity_key: str,
    direction: str | None,
    nice: int | None,
    category: str | None,
) -> None:
    """Change launch order (login items) or process priority (agents, daemons)."""
    if (direction is None) == (nice is None):
        raise click.UsageError("Pass exactly one of --direction or --nice.")
    if direction is not None:
        _apply(ctx, Mutation(
            category=Category(category or Category.LOGIN_ITEMS.value),
            identity_key=identity_key,
            action=MutationAction.PRIORITY,
            direction=PriorityDirection(direction),
        ))
    else:
        _apply(ctx, Mutation(
            category=Category(category or Category.AGENTS.value),
            identity_key=identity_key,
            action=MutationAction.PROCESS_PRIORITY,
            nice=nice,
        ))
