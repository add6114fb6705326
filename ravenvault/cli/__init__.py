"""RavenVault CLI: Typer-based command-line interface.

Provides the ``ravenvault`` command with subcommands for storing and
retrieving blobs, creating and listing snapshots, restoring snapshots
and running garbage collection.

All output uses Rich for formatted terminal display.
"""
