"""``artifactrelay rename`` — rename a job and fix up copy-step references."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from artifactrelay.cli.commands._common import console, open_catalog


def rename_cmd(
    old_name: str = typer.Argument(..., help="Current full name of the job."),
    new_name: str = typer.Argument(..., help="New full name."),
    catalog_path: Optional[Path] = typer.Option(None, "--catalog", help="Catalog file."),
) -> None:
    """Rename a job; copy steps referring to it are rewritten."""
    catalog = open_catalog(catalog_path)
    if catalog.lookup_by_full_name(old_name) is None:
        console.print(f"[red]No such job:[/red] {old_name}")
        raise typer.Exit(code=2)
    owners = catalog.rename_job(old_name, new_name)
    catalog.persist()
    console.print(f"[green]Renamed[/green] {old_name} => {new_name}")
    for owner in owners:
        console.print(f"  updated copy steps of [bold]{owner}[/bold]")
