"""Unit tests for the CLI — Typer command registration and end-to-end commands.

Exercises the commands via typer.testing.CliRunner against a catalog,
storage root and fingerprint database in a temporary directory.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from artifactrelay.cli.app import app
from artifactrelay.host.catalog import HostCatalog
from artifactrelay.models.builds import BuildHandle, BuildResult, JobHandle

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_dir: Path) -> dict[str, Path]:
    """A persisted catalog plus paths for storage, fingerprints and uploads."""
    paths = {
        "catalog": tmp_dir / "catalog.json",
        "storage": tmp_dir / "storage",
        "fingerprints": tmp_dir / "fingerprints.db",
        "uploads": tmp_dir / "uploads",
        "workspace": tmp_dir / "ws",
    }
    paths["workspace"].mkdir()
    (paths["uploads"] / "build").mkdir(parents=True)
    (paths["uploads"] / "build" / "x.zip").write_bytes(b"zip")

    catalog = HostCatalog(paths["catalog"])
    upstream = catalog.add_job(JobHandle(full_name="Upstream"))
    upstream.builds.append(BuildHandle(job_name="Upstream", number=1, result=BuildResult.SUCCESS))
    downstream = catalog.add_job(JobHandle(full_name="Downstream"))
    downstream.builds.append(
        BuildHandle(job_name="Downstream", number=1, workspace=paths["workspace"])
    )
    catalog.persist()
    return paths


def _publish(paths: dict[str, Path]):
    return runner.invoke(
        app,
        [
            "publish", "Upstream", "1", "build/x.zip",
            "--from", str(paths["uploads"]),
            "--catalog", str(paths["catalog"]),
            "--storage", str(paths["storage"]),
        ],
    )


def _copy(paths: dict[str, Path], *extra: str):
    return runner.invoke(
        app,
        [
            "copy", "Downstream", "--project", "Upstream",
            "--catalog", str(paths["catalog"]),
            "--storage", str(paths["storage"]),
            "--fingerprints", str(paths["fingerprints"]),
            *extra,
        ],
    )


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register all expected commands and show help."""

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("publish", "copy", "check-name", "fingerprints", "rename", "selectors"):
            assert command in result.output

    def test_selectors(self):
        result = runner.invoke(app, ["selectors"])
        assert result.exit_code == 0
        assert "status" in result.output
        assert "specific" in result.output


# ---------------------------------------------------------------------------
# Test: commands
# ---------------------------------------------------------------------------


class TestPublishAndCopy:
    def test_publish_records_manifest(self, cli_env):
        result = _publish(cli_env)
        assert result.exit_code == 0, result.output
        assert "Published 1 artifact(s)" in result.output
        catalog = HostCatalog(cli_env["catalog"])
        manifest = catalog.get_artifact_manifest(catalog.find_build("Upstream", 1))
        assert manifest.entries[0].path == "build/x.zip"

    def test_copy(self, cli_env):
        _publish(cli_env)
        result = _copy(cli_env)
        assert result.exit_code == 0, result.output
        assert (cli_env["workspace"] / "build" / "x.zip").read_bytes() == b"zip"
        assert "COPYARTIFACT_BUILD_NUMBER_UPSTREAM" in result.output
        assert "Copy step passed." in result.output

    def test_copy_then_fingerprints(self, cli_env):
        _publish(cli_env)
        _copy(cli_env)
        catalog = HostCatalog(cli_env["catalog"])
        digest = catalog.find_build("Downstream", 1).fingerprint_summary["build/x.zip"]
        result = runner.invoke(
            app, ["fingerprints", digest, "--fingerprints", str(cli_env["fingerprints"])]
        )
        assert result.exit_code == 0, result.output
        assert "Upstream#1" in result.output

    def test_copy_without_artifacts_fails(self, cli_env):
        result = _copy(cli_env)
        assert result.exit_code == 1
        assert "Copy step failed." in result.output

    def test_copy_optional_without_artifacts_passes(self, cli_env):
        assert _copy(cli_env, "--optional").exit_code == 0

    def test_specific_selector_needs_number(self, cli_env):
        assert _copy(cli_env, "--selector", "specific").exit_code == 2

    def test_unknown_selector(self, cli_env):
        assert _copy(cli_env, "--selector", "workspace").exit_code == 2

    def test_missing_catalog(self, tmp_dir: Path):
        result = runner.invoke(
            app, ["copy", "Downstream", "-p", "Upstream", "--catalog", str(tmp_dir / "none.json")]
        )
        assert result.exit_code == 2

    def test_unknown_fingerprint(self, cli_env):
        result = runner.invoke(
            app, ["fingerprints", "deadbeef", "--fingerprints", str(cli_env["fingerprints"])]
        )
        assert result.exit_code == 1


class TestCheckNameAndRename:
    def test_check_name_ok(self, cli_env):
        result = runner.invoke(app, ["check-name", "Upstream", "--catalog", str(cli_env["catalog"])])
        assert result.exit_code == 0
        assert "OK" in result.output

    def test_check_name_error(self, cli_env):
        result = runner.invoke(app, ["check-name", "Upstraem", "--catalog", str(cli_env["catalog"])])
        assert result.exit_code == 1
        assert "Did you mean" in result.output

    def test_rename(self, cli_env):
        result = runner.invoke(
            app, ["rename", "Upstream", "Core", "--catalog", str(cli_env["catalog"])]
        )
        assert result.exit_code == 0, result.output
        assert HostCatalog(cli_env["catalog"]).lookup_by_full_name("Core") is not None

    def test_rename_unknown(self, cli_env):
        result = runner.invoke(app, ["rename", "Nope", "Core", "--catalog", str(cli_env["catalog"])])
        assert result.exit_code == 2
