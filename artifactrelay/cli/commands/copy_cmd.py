"""``artifactrelay copy`` — run a copy-artifact step for a build in the catalog.

Exit code 0 when the step passes, 1 when it fails, 2 on usage errors.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer
from rich.table import Table

from artifactrelay.cli.commands._common import console, open_catalog
from artifactrelay.config import config
from artifactrelay.core.copier import ConsoleListener, CopyArtifactStep, configure_copy_step
from artifactrelay.core.environment import attach_env_record
from artifactrelay.core.fingerprints import FingerprintStore
from artifactrelay.core.replicator import ProfileRegistry
from artifactrelay.core.selectors import UnknownSelectorError
from artifactrelay.core.storage import LocalBucketProfile


def _selector_spec(kind: str, source_build: Optional[str], stable_only: bool) -> dict[str, Any]:
    if kind == "specific":
        if not source_build:
            console.print("[red]--source-build is required with the 'specific' selector.[/red]")
            raise typer.Exit(code=2)
        return {"kind": kind, "build_number": source_build}
    if kind == "status":
        return {"kind": kind, "stable_only": stable_only}
    return {"kind": kind}


def copy_cmd(
    job: str = typer.Argument(..., help="Destination job."),
    project: str = typer.Option(
        ..., "--project", "-p", help="Source project; may carry /K=V filter and $PARAMS."
    ),
    build_number: Optional[int] = typer.Option(
        None, "--build", "-b", help="Destination build number (default: last build)."
    ),
    artifact_filter: str = typer.Option("", "--filter", "-f", help="Artifact glob filter."),
    target: str = typer.Option("", "--target", "-t", help="Target directory in the workspace."),
    flatten: bool = typer.Option(False, "--flatten", help="Ignore directory structure."),
    optional: bool = typer.Option(False, "--optional", help="Do not fail if nothing is copied."),
    selector: str = typer.Option("status", "--selector", "-s", help="Build selector kind."),
    source_build: Optional[str] = typer.Option(
        None, "--source-build", help="Build number for the 'specific' selector."
    ),
    stable_only: bool = typer.Option(
        False, "--stable-only", help="'status' selector: only successful builds."
    ),
    catalog_path: Optional[Path] = typer.Option(None, "--catalog", help="Catalog file."),
    fingerprint_db: Optional[Path] = typer.Option(
        None, "--fingerprints", help="Fingerprint database."
    ),
    storage_root: Optional[Path] = typer.Option(None, "--storage", help="Storage root."),
) -> None:
    """Copy artifacts of another project's build into a build's workspace."""
    catalog = open_catalog(catalog_path)
    build = catalog.find_build(job, build_number)
    if build is None:
        console.print(f"[red]No build of {job} in catalog.[/red]")
        raise typer.Exit(code=2)

    try:
        step_config = configure_copy_step(
            project,
            catalog,
            selector=_selector_spec(selector, source_build, stable_only),
            filter=artifact_filter,
            target=target,
            flatten=flatten,
            optional=optional,
        )
    except UnknownSelectorError as exc:
        console.print(f"[red]{exc.args[0]}[/red]")
        raise typer.Exit(code=2)

    attach_env_record(build, [step_config])
    profiles = ProfileRegistry(
        [LocalBucketProfile(config.storage_profile_id, storage_root or config.storage_root)]
    )
    store = FingerprintStore(fingerprint_db or config.fingerprint_db_path)
    step = CopyArtifactStep(step_config, catalog, profiles, store, settings=config)

    outcome = step.run(build, ConsoleListener(console))
    catalog.persist()

    if outcome.records:
        table = Table(title=f"Copied into {build.display_name}")
        table.add_column("Artifact", style="cyan")
        table.add_column("Digest", style="dim")
        table.add_column("Source")
        for unit in outcome.units:
            for record in unit.records:
                table.add_row(record.name, record.digest[:16], str(unit.source))
        console.print(table)

    if build.env_record is not None:
        for key, value in build.env_record.snapshot().items():
            console.print(f"[bold]{key}[/bold]={value}")

    if outcome.success:
        console.print("[green]Copy step passed.[/green]")
        return
    console.print("[red]Copy step failed.[/red]")
    raise typer.Exit(code=1)
