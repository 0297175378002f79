"""Shared helpers for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from artifactrelay.config import config
from artifactrelay.host.catalog import HostCatalog

console = Console()


def open_catalog(catalog_path: Optional[Path], *, must_exist: bool = True) -> HostCatalog:
    path = catalog_path or config.catalog_path
    if must_exist and not path.exists():
        console.print(f"[red]Catalog not found:[/red] {path}")
        raise typer.Exit(code=2)
    return HostCatalog(path)
