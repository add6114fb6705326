"""Snapshot commands: ``snapshot``, ``snapshots`` and ``delete``.

``snapshot`` freezes a DAG described in a JSON file::

    {"nodes": [{"id": "n1", "digest": "...", "status": "completed"}],
     "edges": [{"from": "n1", "to": "n2"}]}
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from ravenvault.cli.render import snapshot_table
from ravenvault.config import config
from ravenvault.core.errors import (
    DuplicateNodeError,
    ImmutableViolationError,
    NotFoundError,
    StoreError,
)
from ravenvault.core.snapshot_manager import SnapshotManager
from ravenvault.models.dag import DAGEdge, DAGNode

console = Console()


def _open_manager(root: str | None) -> SnapshotManager:
    return SnapshotManager(
        Path(root) if root else config.store_root,
        version=config.snapshot_version,
    )


def snapshot_cmd(
    dag_file: Path = typer.Argument(..., help="JSON file with 'nodes' and 'edges'."),
    description: str = typer.Option("", "--description", "-d", help="Snapshot description."),
    tags: list[str] = typer.Option([], "--tag", "-t", help="Tag (repeatable)."),
    mutable: bool = typer.Option(
        False, "--mutable", help="Allow this snapshot to be deleted and garbage collected."
    ),
    root: str = typer.Option(None, "--root", "-r", help="Store root directory."),
) -> None:
    """Create a snapshot from a DAG description."""
    try:
        raw = json.loads(dag_file.read_text(encoding="utf-8"))
        nodes = [DAGNode.model_validate(n) for n in raw.get("nodes", [])]
        edges = [DAGEdge.model_validate(e) for e in raw.get("edges", [])]
    except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as exc:
        console.print(f"[bold red]Cannot read DAG file:[/bold red] {exc}")
        raise typer.Exit(code=1)

    try:
        snapshot = _open_manager(root).create_snapshot(
            nodes, edges, description, tags=tags, immutable=not mutable
        )
    except DuplicateNodeError as exc:
        console.print(f"[bold red]Invalid DAG:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except StoreError as exc:
        console.print(f"[bold red]Store error:[/bold red] {exc}")
        raise typer.Exit(code=1)
    if not snapshot.consensus_valid:
        console.print("[yellow]Warning: DAG failed consensus validation.[/yellow]")
    console.print(snapshot.id)


def snapshots_cmd(
    root: str = typer.Option(None, "--root", "-r", help="Store root directory."),
) -> None:
    """List all snapshots."""
    try:
        snapshots = _open_manager(root).list_snapshots()
    except StoreError as exc:
        console.print(f"[bold red]Store error:[/bold red] {exc}")
        raise typer.Exit(code=1)
    if not snapshots:
        console.print("[dim]No snapshots.[/dim]")
        return
    console.print(snapshot_table(snapshots))


def delete_cmd(
    snapshot_id: str = typer.Argument(..., help="Snapshot to delete."),
    root: str = typer.Option(None, "--root", "-r", help="Store root directory."),
) -> None:
    """Delete a mutable snapshot."""
    try:
        manager = _open_manager(root)
        manager.require_deletable(snapshot_id)
        manager.delete_snapshot(snapshot_id)
    except (NotFoundError, ImmutableViolationError) as exc:
        console.print(f"[bold red]Cannot delete:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except StoreError as exc:
        console.print(f"[bold red]Store error:[/bold red] {exc}")
        raise typer.Exit(code=1)
    console.print(f"Deleted {snapshot_id}")
