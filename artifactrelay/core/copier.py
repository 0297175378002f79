"""Copy-artifact build step — resolve, select, expand, replicate, link.

Lifecycle of one ``perform()``:

    expand project name -> resolve job (fail closed on access)
        -> select source build -> check workspace
        -> record selection in the build environment
        -> expand composite build into copy units
        -> per unit: replicate + link fingerprints
        -> aggregate

Absences (no job, no build, no workspace, nothing copied) fail the step
unless it is optional.  Download faults always fail it.  Only interruption
escapes the step boundary.
"""

from __future__ import annotations

import logging
import traceback
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Protocol, runtime_checkable

from rich.console import Console

from artifactrelay.config import RelayConfig
from artifactrelay.core.environment import expand_vars, record_selection
from artifactrelay.core.expander import expand_copy_units
from artifactrelay.core.fingerprints import (
    FingerprintLinker,
    FingerprintStore,
    FingerprintStoreError,
    FingerprintSummaries,
)
from artifactrelay.core.globbing import MATCH_ALL
from artifactrelay.core.job_resolver import (
    AccessControl,
    JobLookup,
    resolve_for_execution,
    sanitize_project_name,
)
from artifactrelay.core.replicator import (
    ArtifactDownloadError,
    ArtifactReplicator,
    ManifestLookup,
    ProfileRegistry,
    StorageUnavailableError,
)
from artifactrelay.core.selectors import BuildSelector
from artifactrelay.models.artifacts import CopyUnit
from artifactrelay.models.builds import BuildHandle
from artifactrelay.models.step import CopyArtifactConfig, CopyOutcome, UnitOutcome, UnitStatus

logger = logging.getLogger(__name__)


class BuildInterruptedError(Exception):
    """Raised by the host when the running build is cancelled."""


# ---------------------------------------------------------------------------
# Build log listeners
# ---------------------------------------------------------------------------


@runtime_checkable
class BuildListener(Protocol):
    """The destination build's log stream."""

    def println(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class RecordingListener:
    """Keeps build log lines in memory."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def println(self, message: str) -> None:
        self.lines.append(message)

    def error(self, message: str) -> None:
        self.lines.append(f"ERROR: {message}")

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class ConsoleListener:
    """Writes build log lines to a Rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def println(self, message: str) -> None:
        self._console.print(message, markup=False, highlight=False)

    def error(self, message: str) -> None:
        self._console.print(f"[bold red]ERROR:[/bold red] {message}", highlight=False)


@runtime_checkable
class CopyHost(JobLookup, AccessControl, ManifestLookup, FingerprintSummaries, Protocol):
    """Everything the copy step needs from the host."""


def configure_copy_step(
    project_name: str,
    lookup: JobLookup,
    *,
    selector: BuildSelector | dict | None = None,
    filter: str | None = None,
    target: str | None = None,
    flatten: bool = False,
    optional: bool = False,
) -> CopyArtifactConfig:
    """Build a step configuration from user input.

    An unresolvable name without ``$`` placeholders is cleared to ``""``
    rather than rejected; the step then fails when it runs.
    """
    return CopyArtifactConfig(
        project_name=sanitize_project_name(project_name, lookup),
        selector=selector,
        filter=filter,
        target=target,
        flatten=flatten,
        optional=optional,
    )


# ---------------------------------------------------------------------------
# Step
# ---------------------------------------------------------------------------


class CopyArtifactStep:
    """Copies artifacts stored for another job's build into this build.

    Parameters
    ----------
    config:
        The step configuration.
    host:
        Job lookup, access control, manifests and fingerprint summaries.
    profiles:
        Storage profiles manifests may refer to.
    fingerprints:
        The host-wide durable fingerprint store.
    settings:
        Runtime configuration; ``RelayConfig()`` if not provided.
    """

    def __init__(
        self,
        config: CopyArtifactConfig,
        host: CopyHost,
        profiles: ProfileRegistry,
        fingerprints: FingerprintStore,
        *,
        settings: RelayConfig | None = None,
    ) -> None:
        self.config = config
        self._host = host
        self._settings = settings or RelayConfig()
        self._replicator = ArtifactReplicator(host, profiles)
        self._linker = FingerprintLinker(fingerprints, host)

    def perform(self, build: BuildHandle, listener: BuildListener) -> bool:
        """Run the step for *build*; ``True`` means the step passed."""
        return self.run(build, listener).success

    def run(self, build: BuildHandle, listener: BuildListener) -> CopyOutcome:
        cfg = self.config
        expanded_project = cfg.project_name
        expanded_filter = cfg.filter
        try:
            env = build.environment()
            expanded_project = expand_vars(cfg.project_name, env)
            reference = resolve_for_execution(
                cfg.project_name,
                expanded_project,
                self._host,
                self._host,
                self._settings.authenticated_principal,
            )
            if reference.job is None:
                listener.println(
                    f"Unable to find project for artifact copy: {expanded_project}\n"
                    "This may be due to incorrect project name or permission settings."
                )
                return self._absent(expanded_project, "missing project")

            source = cfg.selector.select(reference.job, env, reference.build_filter, build)
            if source is None:
                listener.println(f"Unable to find a build for artifact copy from: {expanded_project}")
                return self._absent(expanded_project, "missing build")

            workspace = build.workspace
            if workspace is None or not workspace.is_dir():
                listener.println("Unable to access workspace for artifact copy.")
                return self._absent(expanded_project, "missing workspace")

            record_selection(build, expanded_project, source.number)

            target_dir = workspace
            if cfg.target:
                target_dir = workspace / expand_vars(cfg.target, env)
            if not _is_within(workspace, target_dir):
                listener.error(f"Target directory {target_dir} is outside the workspace.")
                return CopyOutcome(
                    success=False, project=expanded_project, message="target outside workspace"
                )
            expanded_filter = expand_vars(cfg.filter, env).strip() or self._settings.default_filter or MATCH_ALL

            units = expand_copy_units(source, reference.build_filter, env)
            outcomes = self._run_units(units, build, target_dir, expanded_filter, listener)
        except BuildInterruptedError:
            raise
        except (OSError, FingerprintStoreError) as exc:
            logger.exception("Artifact copy from %s failed", expanded_project)
            listener.error(
                f"Failed to copy artifacts from {expanded_project} with filter: {expanded_filter}"
            )
            listener.println("".join(traceback.format_exception(exc)))
            return CopyOutcome(success=False, project=expanded_project, message=str(exc))

        success = self._aggregate(outcomes)
        return CopyOutcome(
            success=success,
            project=expanded_project,
            source=source.ref,
            units=outcomes,
        )

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    def _run_units(
        self,
        units: list[CopyUnit],
        destination: BuildHandle,
        target_dir: Path,
        glob_filter: str,
        listener: BuildListener,
    ) -> list[UnitOutcome]:
        workers = min(self._settings.max_parallel_units, len(units))
        if workers <= 1:
            return [
                self._copy_unit(unit, destination, target_dir, glob_filter, listener)
                for unit in units
            ]

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="copy-unit")
        try:
            futures = [
                pool.submit(self._copy_unit, unit, destination, target_dir, glob_filter, listener)
                for unit in units
            ]
            # Results in unit order; each unit isolates its own failures.
            return [future.result() for future in futures]
        except BuildInterruptedError:
            pool.shutdown(wait=True, cancel_futures=True)
            raise
        finally:
            pool.shutdown(wait=True)

    def _copy_unit(
        self,
        unit: CopyUnit,
        destination: BuildHandle,
        target_dir: Path,
        glob_filter: str,
        listener: BuildListener,
    ) -> UnitOutcome:
        source = unit.source_build
        unit_dir = target_dir / unit.target_subdir if unit.target_subdir else target_dir
        try:
            if not _is_within(target_dir, unit_dir):
                raise ArtifactDownloadError(
                    f"Subdirectory {unit.target_subdir!r} of {source.display_name} escapes {target_dir}"
                )
            records = self._replicator.replicate(
                unit, unit_dir, glob_filter, self.config.flatten, listener
            )
        except StorageUnavailableError as exc:
            listener.println(str(exc))
            logger.warning("%s: %s", source.display_name, exc)
            return UnitOutcome(
                source=source.ref,
                target_subdir=unit.target_subdir,
                status=UnitStatus.STORAGE_UNAVAILABLE,
                detail=str(exc),
            )
        except ArtifactDownloadError as exc:
            logger.exception("Download from %s failed", source.display_name)
            listener.error(f"Failed to download artifacts of {source.display_name}: {exc}")
            listener.println("".join(traceback.format_exception(exc)))
            return UnitOutcome(
                source=source.ref,
                target_subdir=unit.target_subdir,
                status=UnitStatus.DOWNLOAD_FAILED,
                detail=str(exc),
            )

        if records is None:
            return UnitOutcome(
                source=source.ref,
                target_subdir=unit.target_subdir,
                status=UnitStatus.NO_MANIFEST,
            )

        fingerprints = self._linker.link(records, source, destination)
        count = len(fingerprints)
        noun = "artifact" if count == 1 else "artifacts"
        listener.println(
            f'Copied {count} {noun} from "{source.job_name}" build number {source.number} '
            "stored in remote storage"
        )
        return UnitOutcome(
            source=source.ref,
            target_subdir=unit.target_subdir,
            status=UnitStatus.COPIED if records else UnitStatus.EMPTY,
            records=records,
        )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def _aggregate(self, outcomes: list[UnitOutcome]) -> bool:
        """Download faults fail the step; otherwise any copying unit passes it.

        With nothing copied anywhere, the step passes only if optional and
        no unit hit an unavailable storage profile.
        """
        if any(u.status is UnitStatus.DOWNLOAD_FAILED for u in outcomes):
            return False
        if any(u.status is UnitStatus.COPIED for u in outcomes):
            return True
        if any(u.status is UnitStatus.STORAGE_UNAVAILABLE for u in outcomes):
            return False
        return self.config.optional

    def _absent(self, project: str, message: str) -> CopyOutcome:
        return CopyOutcome(success=self.config.optional, project=project, message=message)


def _is_within(base: Path, path: Path) -> bool:
    """Whether *path* stays under *base* once ``..`` and symlinks are resolved."""
    return path.resolve().is_relative_to(base.resolve())
