"""Rich renderables for snapshots, restore reports and blob listings."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ravenvault.models.snapshots import BackupSnapshot, RestoreReport


def snapshot_table(snapshots: list[BackupSnapshot]) -> Table:
    table = Table(title="Snapshots")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Created (UTC)")
    table.add_column("Nodes", justify="right")
    table.add_column("Blobs", justify="right")
    table.add_column("Consensus", justify="center")
    table.add_column("Immutable", justify="center")
    table.add_column("Tags")
    table.add_column("Description")

    for s in snapshots:
        consensus = "[green]valid[/green]" if s.consensus_valid else "[bold red]invalid[/bold red]"
        immutable = "[magenta]yes[/magenta]" if s.immutable else "[dim]no[/dim]"
        table.add_row(
            s.id,
            s.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            str(s.node_count),
            str(len(s.referenced_digests)),
            consensus,
            immutable,
            ", ".join(s.tags),
            s.description,
        )
    return table


def restore_panel(report: RestoreReport) -> Panel:
    lines = [
        f"Strategy: [bold]{report.strategy.value}[/bold]",
        f"Restored: [green]{len(report.restored_nodes)}[/green]",
        f"Recompute: [yellow]{len(report.recompute_nodes)}[/yellow]",
        f"Skipped: [dim]{len(report.skipped_nodes)}[/dim]",
    ]
    if report.baseline_snapshot_id:
        lines.append(f"Baseline: {report.baseline_snapshot_id}")
    if report.best_effort:
        lines.append("[bold red]Best-effort restore[/bold red]")
    if report.cyclic_nodes:
        lines.append(f"Cyclic: [red]{', '.join(report.cyclic_nodes)}[/red]")
    if report.recompute_nodes:
        lines.append("")
        lines.append("Needs recomputation:")
        lines.extend(f"  - {nid}" for nid in report.recompute_nodes)

    style = "yellow" if report.needs_recompute else "green"
    return Panel("\n".join(lines), title=f"Restore {report.snapshot_id}", border_style=style)


def print_blobs(console: Console, digests: list[str]) -> None:
    if not digests:
        console.print("[dim]No blobs stored.[/dim]")
        return
    for digest in digests:
        console.print(digest)
    console.print(f"[dim]{len(digests)} blob(s)[/dim]")
