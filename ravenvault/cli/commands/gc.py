"""``ravenvault gc``: apply the retention policy."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from ravenvault.config import config
from ravenvault.core.content_store import ContentStore
from ravenvault.core.errors import StoreError
from ravenvault.core.retention import RetentionPolicyEvaluator
from ravenvault.core.snapshot_manager import SnapshotManager

console = Console()


def gc_cmd(
    max_snapshots: int = typer.Option(
        config.max_snapshots, "--max-snapshots", "-m", help="Newest snapshots to keep."
    ),
    sweep: bool = typer.Option(
        False, "--sweep", help="Also delete blobs no snapshot references."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only show what would be deleted."),
    root: str = typer.Option(None, "--root", "-r", help="Store root directory."),
) -> None:
    """Delete snapshots the retention policy rejects.  Immutable ones always survive."""
    store_root = Path(root) if root else config.store_root
    policy = config.default_policy().model_copy(
        update={
            "max_snapshots": max_snapshots,
            "preserve_history": not sweep,
        }
    )

    try:
        evaluator = RetentionPolicyEvaluator(
            SnapshotManager(store_root), ContentStore(store_root)
        )
        if dry_run:
            planned = evaluator.plan(policy)
        else:
            deleted = evaluator.garbage_collect(policy)
    except StoreError as exc:
        console.print(f"[bold red]Store error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if dry_run:
        for snapshot_id in planned:
            console.print(f"[yellow]would delete[/yellow] {snapshot_id}")
        console.print(f"[dim]{len(planned)} snapshot(s) would be deleted[/dim]")
        return

    for snapshot_id in deleted:
        console.print(f"[red]deleted[/red] {snapshot_id}")
    console.print(f"[dim]{len(deleted)} snapshot(s) deleted[/dim]")
