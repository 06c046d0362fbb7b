"""Rich output formatting helpers for the LaunchLedger CLI.

Provides impact-colored tables for the inventory, per-item scores, backups
and the persisted snapshot, plus the JSON shapes of ``--format json``.

Impact Color Mapping:
    HIGH = bold red, MEDIUM = yellow, LOW = green, unscored = dim
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from launchledger.core.backup import StartupConfiguration, format_timestamp
from launchledger.core.records.diagnostics import SourceStatus
from launchledger.core.records.models import Category, Impact, LaunchRecord
from launchledger.core.reconcile import Snapshot
from launchledger.core.scoring import AggregateImpact, ImpactScorer
from launchledger.inventory import InventoryStore, RefreshReport
from launchledger.mutators import MutationResult

_IMPACT_STYLES: dict[Impact, str] = {
    Impact.HIGH: "bold red",
    Impact.MEDIUM: "yellow",
    Impact.LOW: "green",
}

_STATUS_NOTES: dict[SourceStatus, str] = {
    SourceStatus.ACCESS_DENIED: "[bold red]Access denied[/bold red]: grant Full Disk Access "
                                "to read this category. Previously known items are shown.",
    SourceStatus.DEGRADED: "[yellow]Partial read[/yellow]: a fallback answered or some "
                           "entries were skipped.",
    SourceStatus.UNAVAILABLE: "[yellow]Unavailable[/yellow]: no method could read this "
                              "category. Previously known items are shown.",
}

console = Console()


def impact_text(impact: Impact | None) -> Text:
    """Return a styled label for an impact level."""
    if impact is None:
        return Text("-", style="dim")
    return Text(impact.label, style=_IMPACT_STYLES[impact])


def _enabled_text(enabled: bool) -> Text:
    return Text("yes", style="green") if enabled else Text("no", style="dim")


def print_category(category: Category, store: InventoryStore, verbose: bool = False) -> None:
    """Print one category table followed by its status note."""
    state = store.state(category)
    table = Table(title=category.heading, show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Identity", style="dim")
    table.add_column("Enabled", justify="center")
    table.add_column("Impact", justify="center")
    table.add_column("Path")

    for record in state.records:
        table.add_row(
            record.display_name,
            record.identity_key,
            _enabled_text(record.enabled),
            impact_text(record.impact),
            record.path or "-",
        )

    if state.records:
        console.print(table)
    else:
        console.print(f"[bold]{category.heading}[/bold]: [dim]none found[/dim]")

    note = _STATUS_NOTES.get(state.status)
    if note:
        console.print(f"  {note}")
    if verbose:
        for diag in state.diagnostics:
            where = f" ({diag.path})" if diag.path else ""
            console.print(f"  [dim]- {diag.kind.value}: {escape(diag.message + where)}[/dim]")


def print_aggregate(aggregate: AggregateImpact) -> None:
    """Print the whole-machine startup estimate."""
    console.print(
        f"[bold]{aggregate.enabled_count}[/bold] enabled items | "
        f"estimated startup cost [bold]{aggregate.estimated_seconds:.2f}s[/bold] "
        f"(sum {aggregate.total_seconds:.2f}s)"
    )


def print_inventory(
    store: InventoryStore,
    categories: Iterable[Category],
    report: RefreshReport,
    verbose: bool = False,
) -> None:
    """Print every requested category, then the aggregate line."""
    for category in categories:
        print_category(category, store, verbose=verbose)
        console.print("")
    print_aggregate(report.aggregate)


def print_scores(records: Iterable[LaunchRecord], scorer: ImpactScorer) -> None:
    """Print per-item metrics, highest overall score first."""
    scored = [(r, scorer.score(r)) for r in records if r.enabled]
    scored.sort(key=lambda pair: (-pair[1].overall_score, pair[0].display_name.casefold()))

    table = Table(title="Startup Impact", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Kind", style="dim")
    table.add_column("Time (s)", justify="right")
    table.add_column("Memory (MB)", justify="right")
    table.add_column("CPU", justify="center")
    table.add_column("Score", justify="right")
    table.add_column("Impact", justify="center")
    for record, metrics in scored:
        table.add_row(
            record.display_name,
            record.kind.value,
            f"{metrics.estimated_startup_time_seconds:.2f}",
            str(metrics.memory_impact_mb),
            impact_text(metrics.cpu_impact),
            f"{metrics.overall_score:.2f}",
            impact_text(metrics.overall_impact),
        )
    console.print(table)


def print_mutation(result: MutationResult) -> None:
    console.print(f"[green]Done[/green]: {result.message}")


def print_backups(paths: list[Path]) -> None:
    if not paths:
        console.print("[dim]No backups found.[/dim]")
        return
    table = Table(title="Backups", show_header=True, header_style="bold")
    table.add_column("File", style="bold")
    table.add_column("Directory", style="dim")
    for path in paths:
        table.add_row(path.name, str(path.parent))
    console.print(table)


def print_configuration(config: StartupConfiguration) -> None:
    """Print the contents of an exported configuration."""
    console.print(Panel(f"[bold]{format_timestamp(config.timestamp)}[/bold]", title="Startup Configuration"))
    console.print(f"  Login items:    [bold]{len(config.login_items)}[/bold]")
    for path in config.login_items:
        console.print(f"    {path}")
    for title, services in (
        ("Launch agents", config.launch_agents),
        ("Launch daemons", config.launch_daemons),
    ):
        console.print(f"  {title + ':':<16}[bold]{len(services)}[/bold]")
        for service in services:
            marker = "[green]on [/green]" if service.is_enabled else "[dim]off[/dim]"
            console.print(f"    {marker} {service.path}")


def print_snapshot(snapshot: Snapshot) -> None:
    if not snapshot:
        console.print("[dim]Snapshot is empty.[/dim]")
        return
    table = Table(title="Saved Login Items", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Enabled", justify="center")
    table.add_column("Path")
    for key in sorted(snapshot, key=str.casefold):
        entry = snapshot[key]
        table.add_row(entry.display_name, _enabled_text(entry.enabled), entry.path or "-")
    console.print(table)


# ---------------------------------------------------------------------------
# JSON shapes
# ---------------------------------------------------------------------------


def record_to_json(record: LaunchRecord) -> dict[str, Any]:
    return {
        "kind": record.kind.value,
        "identity_key": record.identity_key,
        "display_name": record.display_name,
        "path": record.path,
        "enabled": record.enabled,
        "publisher": record.publisher,
        "impact": record.impact.label if record.impact is not None else None,
    }


def aggregate_to_json(aggregate: AggregateImpact) -> dict[str, Any]:
    return {
        "enabled_count": aggregate.enabled_count,
        "estimated_seconds": round(aggregate.estimated_seconds, 4),
        "total_seconds": round(aggregate.total_seconds, 4),
    }


def inventory_to_json(
    store: InventoryStore,
    categories: Iterable[Category],
    report: RefreshReport,
) -> dict[str, Any]:
    """Serialize the requested categories with their status and diagnostics."""
    out: dict[str, Any] = {"categories": {}, "aggregate": aggregate_to_json(report.aggregate)}
    for category in categories:
        state = store.state(category)
        out["categories"][category.value] = {
            "status": state.status.value,
            "method": state.method,
            "records": [record_to_json(r) for r in state.records],
            "diagnostics": [
                {"kind": d.kind.value, "message": d.message, "path": d.path}
                for d in state.diagnostics
            ],
        }
    return out
