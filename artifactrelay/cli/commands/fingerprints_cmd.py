"""``artifactrelay fingerprints`` — show which builds share an artifact."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from artifactrelay.cli.commands._common import console
from artifactrelay.config import config
from artifactrelay.core.fingerprints import FingerprintStore


def fingerprints_cmd(
    digest: str = typer.Argument(..., help="Artifact digest."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Artifact name."),
    fingerprint_db: Optional[Path] = typer.Option(
        None, "--fingerprints", help="Fingerprint database."
    ),
) -> None:
    """List fingerprints for a digest and the builds that use them."""
    store = FingerprintStore(fingerprint_db or config.fingerprint_db_path)
    if name:
        entry = store.get(name, digest)
        entries = [entry] if entry else []
    else:
        entries = store.find_by_digest(digest)

    if not entries:
        console.print(f"[dim]No fingerprint recorded for {digest}.[/dim]")
        raise typer.Exit(code=1)

    table = Table(title=f"Fingerprints for {digest[:16]}")
    table.add_column("Artifact", style="cyan")
    table.add_column("Original build", style="green")
    table.add_column("Used by")
    for entry in entries:
        table.add_row(
            entry.name,
            str(entry.original) if entry.original else "-",
            ", ".join(str(usage) for usage in entry.usages),
        )
    console.print(table)
