"""``artifactrelay publish`` — upload a build's files to storage.

Stores the files in the directory-backed storage profile and attaches the
resulting manifest to the build in the catalog.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from artifactrelay.cli.commands._common import console, open_catalog
from artifactrelay.config import config
from artifactrelay.core.storage import LocalBucketProfile


def publish_cmd(
    job: str = typer.Argument(..., help="Job that owns the build."),
    build_number: int = typer.Argument(..., help="Build number."),
    paths: List[str] = typer.Argument(..., help="Artifact paths relative to --from."),
    base_dir: Path = typer.Option(
        Path("."), "--from", help="Directory the artifact paths are relative to."
    ),
    catalog_path: Optional[Path] = typer.Option(None, "--catalog", help="Catalog file."),
    storage_root: Optional[Path] = typer.Option(None, "--storage", help="Storage root."),
) -> None:
    """Upload artifacts of a build and record its manifest."""
    catalog = open_catalog(catalog_path)
    build = catalog.find_build(job, build_number)
    if build is None:
        console.print(f"[red]No build {job} #{build_number} in catalog.[/red]")
        raise typer.Exit(code=2)

    profile = LocalBucketProfile(config.storage_profile_id, storage_root or config.storage_root)
    manifest = profile.upload(base_dir, paths)
    catalog.set_manifest(build.ref, manifest)
    catalog.persist()

    console.print(
        f"[green]Published {len(manifest.entries)} artifact(s)[/green] for "
        f"{build.display_name} to profile [bold]{profile.profile_id}[/bold]"
    )
