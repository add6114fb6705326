"""Blob commands: ``store``, ``retrieve``, ``blobs`` and ``verify``.

Talk to the Content Store directly.  Payloads are JSON documents, read
from a file or passed inline.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console

from ravenvault.cli.render import print_blobs
from ravenvault.config import config
from ravenvault.core.content_store import ContentStore
from ravenvault.core.errors import NotFoundError, StoreError

console = Console()


def _open_store(root: str | None) -> ContentStore:
    return ContentStore(Path(root) if root else config.store_root)


def store_cmd(
    payload: str = typer.Argument(
        ...,
        help="JSON payload, or @path to read it from a file.",
    ),
    root: str = typer.Option(
        None,
        "--root",
        "-r",
        help="Store root directory (defaults to RAVENVAULT_STORE_ROOT).",
    ),
) -> None:
    """Store a JSON payload and print its digest."""
    text = Path(payload[1:]).read_text(encoding="utf-8") if payload.startswith("@") else payload
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        console.print(f"[bold red]Invalid JSON payload:[/bold red] {exc}")
        raise typer.Exit(code=1)

    try:
        digest = _open_store(root).store(document, {"source": "cli"})
    except StoreError as exc:
        console.print(f"[bold red]Store failed:[/bold red] {exc}")
        raise typer.Exit(code=1)
    console.print(digest)


def retrieve_cmd(
    digest: str = typer.Argument(..., help="Digest of the blob to print."),
    root: str = typer.Option(None, "--root", "-r", help="Store root directory."),
) -> None:
    """Print the payload stored under a digest."""
    try:
        payload = _open_store(root).retrieve(digest)
    except NotFoundError as exc:
        console.print(f"[bold red]Not found:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except StoreError as exc:
        console.print(f"[bold red]Corrupt blob:[/bold red] {exc}")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(payload))


def blobs_cmd(
    root: str = typer.Option(None, "--root", "-r", help="Store root directory."),
) -> None:
    """List every stored digest."""
    print_blobs(console, _open_store(root).list())


def verify_cmd(
    root: str = typer.Option(None, "--root", "-r", help="Store root directory."),
) -> None:
    """Re-hash every blob and report the ones that fail."""
    store = _open_store(root)
    failed = [digest for digest in store.list() if not store.verify(digest)]
    if failed:
        for digest in failed:
            console.print(f"[bold red]CORRUPT[/bold red] {digest}")
        raise typer.Exit(code=1)
    console.print("[green]All blobs verified.[/green]")
