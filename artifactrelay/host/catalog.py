"""JSON-persisted host catalog.

The catalog is the local stand-in for a CI host: it owns jobs and their
builds, the artifact manifests the object store attached to builds, and the
copy-step configurations each job carries.  It satisfies every host
protocol the copy pipeline consumes (job lookup, access control, manifest
lookup, fingerprint summaries, step configurations).

The catalog file is ``.artifactrelay/catalog.json`` by default.  Build
environment records are never written to it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, Field

from artifactrelay.core.environment import attach_env_record
from artifactrelay.core.rename import rename_job_references
from artifactrelay.models.artifacts import ArtifactManifest
from artifactrelay.models.builds import BuildHandle, BuildRef, JobHandle
from artifactrelay.models.step import CopyArtifactConfig

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


class CatalogData(BaseModel):
    """On-disk shape of the catalog."""

    jobs: list[JobHandle] = Field(default_factory=list)
    manifests: dict[str, ArtifactManifest] = Field(default_factory=dict)
    copy_steps: dict[str, list[CopyArtifactConfig]] = Field(default_factory=dict)


class HostCatalog:
    """In-memory host model with optional JSON persistence.

    Parameters
    ----------
    catalog_path:
        Where ``persist()`` writes.  Loaded on construction if it exists.
        ``None`` keeps the catalog purely in memory.
    """

    def __init__(self, catalog_path: Path | None = None) -> None:
        self._path = Path(catalog_path) if catalog_path is not None else None
        self._jobs: dict[str, JobHandle] = {}
        self._manifests: dict[str, ArtifactManifest] = {}
        self._steps: dict[str, list[CopyArtifactConfig]] = {}
        self._lock = threading.RLock()
        if self._path is not None and self._path.exists():
            self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        if self._path is None:
            return
        data = CatalogData.model_validate_json(self._path.read_text(encoding="utf-8"))
        with self._lock:
            self._jobs = {job.full_name: job for job in data.jobs}
            self._manifests = dict(data.manifests)
            self._steps = {owner: list(steps) for owner, steps in data.copy_steps.items()}
        logger.debug("Loaded %d job(s) from %s", len(self._jobs), self._path)

    def persist(self) -> None:
        """Write the catalog to disk; a no-op for in-memory catalogs."""
        if self._path is None:
            return
        with self._lock:
            data = CatalogData(
                jobs=list(self._jobs.values()),
                manifests=dict(self._manifests),
                copy_steps={owner: list(steps) for owner, steps in self._steps.items()},
            )
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(data.model_dump_json(indent=2), encoding="utf-8")
            tmp.replace(self._path)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_job(self, job: JobHandle) -> JobHandle:
        with self._lock:
            self._jobs[job.full_name] = job
        return job

    def add_build(self, job_name: str, build: BuildHandle) -> BuildHandle:
        with self._lock:
            job = self._jobs[job_name]
            job.builds.append(build)
        return build

    def set_manifest(self, build: BuildRef, manifest: ArtifactManifest) -> None:
        with self._lock:
            self._manifests[str(build)] = manifest

    def set_copy_steps(self, owner: str, steps: list[CopyArtifactConfig]) -> None:
        with self._lock:
            self._steps[owner] = list(steps)

    def copy_steps_for(self, owner: str) -> list[CopyArtifactConfig]:
        with self._lock:
            return list(self._steps.get(owner, []))

    def find_build(self, job_name: str, number: int | None = None) -> BuildHandle | None:
        """A build of *job_name* by number, or its last build."""
        job = self.lookup_by_full_name(job_name)
        if job is None:
            return None
        return job.last_build if number is None else job.get_build(number)

    def start_build(self, build: BuildHandle) -> BuildHandle:
        """Build-start hook: attach the copy environment record if needed."""
        attach_env_record(build, self.copy_steps_for(build.job_name))
        return build

    def rename_job(self, old_name: str, new_name: str) -> list[str]:
        """Rename a job and rewrite every copy step that refers to it."""
        with self._lock:
            job = self._jobs.pop(old_name)
            job.full_name = new_name
            for build in job.builds:
                old_ref = str(build.ref)
                build.job_name = new_name
                if old_ref in self._manifests:
                    self._manifests[str(build.ref)] = self._manifests.pop(old_ref)
            self._jobs[new_name] = job
            if old_name in self._steps:
                self._steps[new_name] = self._steps.pop(old_name)
        return rename_job_references(self, old_name, new_name)

    # ------------------------------------------------------------------
    # Host protocols
    # ------------------------------------------------------------------

    def lookup_by_full_name(self, name: str) -> JobHandle | None:
        with self._lock:
            return self._jobs.get(name)

    def all_job_names(self) -> list[str]:
        with self._lock:
            return sorted(self._jobs)

    def has_read_permission(self, job: JobHandle, principal: str) -> bool:
        # Anything anonymous users may read, authenticated users may read too.
        return principal in job.readers or ANONYMOUS in job.readers

    def get_artifact_manifest(self, build: BuildHandle) -> ArtifactManifest | None:
        with self._lock:
            return self._manifests.get(str(build.ref))

    def attach_or_merge_summary(self, build: BuildHandle, pairs: dict[str, str]) -> None:
        with self._lock:
            if build.fingerprint_summary is None:
                build.fingerprint_summary = dict(pairs)
            else:
                build.fingerprint_summary.update(pairs)

    def iter_copy_steps(self) -> Iterable[tuple[str, list[CopyArtifactConfig]]]:
        with self._lock:
            return [(owner, list(steps)) for owner, steps in self._steps.items()]

    def replace_copy_steps(self, owner: str, steps: list[CopyArtifactConfig]) -> None:
        with self._lock:
            self._steps[owner] = list(steps)
        self.persist()
