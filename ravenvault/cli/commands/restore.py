"""``ravenvault restore SNAPSHOT_ID``: classify a snapshot's nodes.

Prints which nodes can be restored from the store and which need to be
recomputed by their owning agents.  Exits with code 2 when anything
needs recomputation.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from ravenvault.cli.render import restore_panel
from ravenvault.config import config
from ravenvault.core.content_store import ContentStore
from ravenvault.core.errors import GraphInconsistencyError, NotFoundError, StoreError
from ravenvault.core.restore_engine import RestoreEngine
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.models.snapshots import RegenerationStrategy

console = Console()


def restore_cmd(
    snapshot_id: str = typer.Argument(..., help="Snapshot to restore."),
    strategy: RegenerationStrategy = typer.Option(
        config.default_strategy, "--strategy", "-s", help="Regeneration strategy."
    ),
    nodes: list[str] = typer.Option(
        [], "--node", "-n", help="Node id for a selective restore (repeatable)."
    ),
    baseline: str = typer.Option(
        None, "--baseline", "-b", help="Baseline snapshot for incremental restore."
    ),
    validate: bool = typer.Option(
        config.validate_before_restore,
        "--validate/--no-validate",
        help="Re-hash content before classifying a node as restored.",
    ),
    cascade: bool = typer.Option(
        config.cascade_recompute,
        "--cascade/--no-cascade",
        help="Flag everything downstream of a recompute node as well.",
    ),
    best_effort: bool = typer.Option(
        False, "--best-effort", help="Restore even if the DAG is inconsistent."
    ),
    root: str = typer.Option(None, "--root", "-r", help="Store root directory."),
) -> None:
    """Restore a snapshot and report what must be recomputed."""
    store_root = Path(root) if root else config.store_root
    policy = config.default_policy().model_copy(
        update={
            "strategy": strategy,
            "validate_before_restore": validate,
            "cascade_recompute": cascade,
        }
    )

    try:
        engine = RestoreEngine(ContentStore(store_root), SnapshotManager(store_root))
        report = engine.restore_snapshot(
            snapshot_id,
            policy,
            selection=nodes or None,
            baseline_snapshot_id=baseline,
            best_effort=best_effort,
        )
    except NotFoundError as exc:
        console.print(f"[bold red]Not found:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except GraphInconsistencyError as exc:
        console.print(f"[bold red]Inconsistent snapshot:[/bold red] {exc}")
        console.print("[dim]Re-run with --best-effort to restore anyway.[/dim]")
        raise typer.Exit(code=1)
    except ValueError as exc:
        console.print(f"[bold red]Invalid selection:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except StoreError as exc:
        console.print(f"[bold red]Store error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(restore_panel(report))
    if report.needs_recompute:
        raise typer.Exit(code=2)
