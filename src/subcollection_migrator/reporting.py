"""Rich-based reporting utilities for the submigrate CLI."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

from subcollection_migrator.report import RunReport
from subcollection_migrator.targets import MigrationTarget

console = Console()

MAX_LISTED_ISSUES = 25


def print_json(payload: Dict[str, Any]) -> None:
    """Print a JSON payload with syntax highlighting."""
    console.print(JSON(json.dumps(payload, indent=2, default=str)))


def format_targets(targets: List[MigrationTarget]) -> str:
    lines = []
    for target in targets:
        line = f"{target.collection}.{target.field} -> {target.collection}/{{id}}/{target.subcollection}"
        if target.aggregates:
            line += f" (counts: {', '.join(target.aggregates.derived_fields())})"
        lines.append(line)
    return "\n".join(lines)


def print_targets_table(targets: List[MigrationTarget]) -> None:
    table = Table(title="Migration Targets", show_header=True, header_style="bold cyan")
    table.add_column("Collection", style="bold")
    table.add_column("Field")
    table.add_column("Subcollection", style="magenta")
    table.add_column("Denormalised")
    table.add_column("Aggregates")

    for target in targets:
        denormalised = ["parentId"]
        if target.parent_id_alias:
            denormalised.append(target.parent_id_alias)
        denormalised.extend(target.copy_parent_fields)
        aggregates = ", ".join(target.aggregates.derived_fields()) if target.aggregates else ""
        table.add_row(target.collection, target.field, target.subcollection, ", ".join(denormalised), aggregates)

    console.print(table)


def print_run_summary(report: RunReport) -> None:
    """Print the end-of-run summary: counters, per-target items and issues."""
    title = f"{report.phase.capitalize()} Summary"
    if report.dry_run:
        title += " (DRY RUN)"

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")

    table.add_row("Documents processed", str(report.parents_scanned))
    table.add_row("Documents changed" if not report.dry_run else "Documents to change", str(report.parents_mutated))
    if report.phase == "migrate":
        table.add_row("Child records created", str(report.children_created))
        table.add_row("Aggregate updates", str(report.aggregates_updated))
    else:
        table.add_row("Fields removed", str(report.fields_removed))
    for name, count in sorted(report.items.items()):
        table.add_row(f"  {name}", str(count))
    if report.dry_run:
        table.add_row("Operations that would apply", str(report.operations_would_apply))
    else:
        table.add_row("Operations committed", str(report.operations_committed))
        table.add_row("Operations failed", str(report.operations_failed))
    table.add_row("Errors", str(len(report.errors)))
    table.add_row("Warnings", str(len(report.warnings)))

    console.print(table)

    if report.issues:
        lines = []
        for issue in report.issues[:MAX_LISTED_ISSUES]:
            color = "red" if issue.level == "error" else "yellow"
            lines.append(f"[{color}]● {issue.message}[/{color}]")
        if len(report.issues) > MAX_LISTED_ISSUES:
            lines.append(f"[dim]... and {len(report.issues) - MAX_LISTED_ISSUES} more[/dim]")
        border = "red" if report.errors else "yellow"
        console.print(Panel("\n".join(lines), title="Errors/Warnings", border_style=border))

    if report.dry_run:
        console.print(
            Panel(
                "[yellow]DRY RUN - no data was changed.[/yellow]\nRun again with --execute to apply.",
                title="Mode",
            )
        )
    elif not report.issues:
        console.print(Panel(f"[green]✓ {report.phase.capitalize()} completed[/green]", title="Mode"))


def print_verification_table(results: Dict[str, Dict[str, Any]]) -> None:
    table = Table(title="Verification", show_header=True, header_style="bold cyan")
    table.add_column("Target", style="bold")
    table.add_column("Subcollection", style="magenta")
    table.add_column("Safe", justify="right", style="green")
    table.add_column("Unsafe", justify="right", style="red")
    table.add_column("Already removed", justify="right")
    table.add_column("With children", justify="right")
    table.add_column("Child records", justify="right")

    for key, row in results.items():
        table.add_row(
            key,
            row["subcollection"],
            str(row["safe"]),
            str(row["unsafe"]),
            str(row["absent"]),
            str(row["with_children"]),
            str(row["children"]),
        )

    console.print(table)
