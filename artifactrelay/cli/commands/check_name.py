"""``artifactrelay check-name`` — validate a source project name."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from artifactrelay.cli.commands._common import console, open_catalog
from artifactrelay.core.job_resolver import check_project_name

_STYLES = {"ok": "green", "warning": "yellow", "error": "red"}


def check_name_cmd(
    name: str = typer.Argument(..., help="Project name as it would be configured."),
    catalog_path: Optional[Path] = typer.Option(None, "--catalog", help="Catalog file."),
) -> None:
    """Check a project name the way the step configuration form does."""
    result = check_project_name(name, open_catalog(catalog_path))
    style = _STYLES[result.level]
    console.print(f"[{style}]{result.level.upper()}[/{style}] {result.message}".rstrip())
    if result.is_error:
        raise typer.Exit(code=1)
