"""Main Typer application: imports and registers all CLI commands.

Entry point: ``ravenvault`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from ravenvault.cli.commands.blobs import blobs_cmd, retrieve_cmd, store_cmd, verify_cmd
from ravenvault.cli.commands.gc import gc_cmd
from ravenvault.cli.commands.restore import restore_cmd
from ravenvault.cli.commands.snapshots import delete_cmd, snapshot_cmd, snapshots_cmd
from ravenvault.config import config

app = typer.Typer(
    name="ravenvault",
    help="RavenVault: content-addressed backup store with a metadata DAG.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        config.log_level, "--log-level", help="Logging level (DEBUG, INFO, WARNING...)."
    ),
) -> None:
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


# Register subcommands
app.command(name="store", help="Store a JSON payload and print its digest.")(store_cmd)
app.command(name="retrieve", help="Print the payload stored under a digest.")(retrieve_cmd)
app.command(name="blobs", help="List stored digests.")(blobs_cmd)
app.command(name="verify", help="Re-hash every blob.")(verify_cmd)
app.command(name="snapshot", help="Create a snapshot from a DAG file.")(snapshot_cmd)
app.command(name="snapshots", help="List snapshots.")(snapshots_cmd)
app.command(name="delete", help="Delete a mutable snapshot.")(delete_cmd)
app.command(name="restore", help="Restore a snapshot and report recompute nodes.")(restore_cmd)
app.command(name="gc", help="Apply the retention policy.")(gc_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
