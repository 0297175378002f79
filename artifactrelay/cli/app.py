"""Main Typer application — imports and registers all CLI commands.

Entry point: ``artifactrelay`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging
from typing import Optional

import typer
from rich.logging import RichHandler

from artifactrelay.cli.commands.check_name import check_name_cmd
from artifactrelay.cli.commands.copy_cmd import copy_cmd
from artifactrelay.cli.commands.fingerprints_cmd import fingerprints_cmd
from artifactrelay.cli.commands.publish import publish_cmd
from artifactrelay.cli.commands.rename import rename_cmd
from artifactrelay.config import config

app = typer.Typer(
    name="artifactrelay",
    help="Artifactrelay: copy stored build artifacts between CI builds with provenance.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="publish", help="Upload a build's artifacts to storage.")(publish_cmd)
app.command(name="copy", help="Copy another project's artifacts into a build.")(copy_cmd)
app.command(name="check-name", help="Validate a source project name.")(check_name_cmd)
app.command(name="fingerprints", help="Show builds linked by an artifact digest.")(fingerprints_cmd)
app.command(name="rename", help="Rename a job and update copy steps.")(rename_cmd)


@app.callback()
def configure_logging(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level."),
) -> None:
    """Configure application logging with a Rich handler."""
    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command(name="selectors", help="List available build selectors.")
def selectors_cmd() -> None:
    """List the build selectors a copy step can be configured with."""
    from rich.console import Console
    from rich.table import Table

    from artifactrelay.core.selectors import available_selectors

    table = Table(title="Build Selectors")
    table.add_column("Kind", style="cyan")
    table.add_column("Description")
    for kind, display_name in available_selectors().items():
        table.add_row(kind, display_name)
    Console().print(table)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
