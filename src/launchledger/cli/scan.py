"""``launchledger scan`` and ``launchledger score`` — inventory and impact.

Exit Codes:
    0 — Inventory read (possibly partially).
    2 — No autostart items found in any requested category.
    3 — At least one category could not be read because access was denied.
"""

from __future__ import annotations

import json
import sys

import click

from launchledger.cli.context import CATEGORY_CHOICE, get_manager, run_async
from launchledger.core.records.models import Category

EXIT_NOTHING_FOUND = 2
EXIT_ACCESS_DENIED = 3


@click.command("scan")
@click.option(
    "--category", "categories",
    type=CATEGORY_CHOICE,
    multiple=True,
    help="Restrict to one category (repeatable). Default: all.",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)
@click.option("--details", is_flag=True, default=False, help="Show per-category diagnostics.")
@click.pass_context
def scan_command(ctx: click.Context, categories: tuple[str, ...], output_format: str, details: bool) -> None:
    """Read, reconcile and score the autostart inventory.

    Exit code 0 on success, 2 if nothing was found, 3 if any category
    was access-denied (grant Full Disk Access and retry).
    """
    manager = get_manager(ctx)
    wanted = [Category(c) for c in categories] or manager.categories
    report = run_async(manager.refresh(wanted))

    if output_format == "json":
        from launchledger.cli.output import inventory_to_json
        click.echo(json.dumps(inventory_to_json(manager.store, wanted, report), indent=2, sort_keys=True))
    else:
        from launchledger.cli.output import print_inventory
        print_inventory(manager.store, wanted, report, verbose=details)

    if report.access_denied:
        if output_format == "text":
            names = ", ".join(c.heading for c in report.access_denied)
            click.echo(f"Access denied for: {names}", err=True)
        sys.exit(EXIT_ACCESS_DENIED)
    if report.total_records == 0:
        if output_format == "text":
            click.echo("No autostart items found.")
        sys.exit(EXIT_NOTHING_FOUND)
    sys.exit(0)


@click.command("score")
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)
@click.pass_context
def score_command(ctx: click.Context, output_format: str) -> None:
    """Estimate the startup cost of every enabled item."""
    manager = get_manager(ctx)
    report = run_async(manager.refresh())
    records = manager.store.all_records()

    if output_format == "json":
        from launchledger.cli.output import aggregate_to_json
        items = []
        for record in records:
            if not record.enabled:
                continue
            metrics = manager.scorer.score(record)
            items.append({
                "identity_key": record.identity_key,
                "kind": record.kind.value,
                "estimated_startup_time_seconds": round(metrics.estimated_startup_time_seconds, 4),
                "memory_impact_mb": metrics.memory_impact_mb,
                "cpu_impact": metrics.cpu_impact.label,
                "overall_score": round(metrics.overall_score, 4),
                "overall_impact": metrics.overall_impact.label,
            })
        payload = {"aggregate": aggregate_to_json(report.aggregate), "items": items}
        click.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        from launchledger.cli.output import print_aggregate, print_scores
        print_scores(records, manager.scorer)
        print_aggregate(report.aggregate)
