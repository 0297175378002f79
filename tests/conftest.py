"""Shared test fixtures for Artifactrelay."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from artifactrelay.config import RelayConfig
from artifactrelay.core.copier import CopyArtifactStep, RecordingListener, configure_copy_step
from artifactrelay.core.fingerprints import FingerprintStore
from artifactrelay.core.replicator import ArtifactDownloadError, ProfileRegistry
from artifactrelay.core.storage import LocalBucketProfile
from artifactrelay.host.catalog import HostCatalog
from artifactrelay.models.artifacts import ArtifactManifest, ArtifactRecord, ManifestEntry
from artifactrelay.models.builds import BuildHandle, BuildRef, BuildResult, JobHandle


class FakeProfile:
    """Storage profile that writes placeholder files and records its calls."""

    def __init__(self, profile_id: str = "fake", *, fail: bool = False) -> None:
        self._profile_id = profile_id
        self.fail = fail
        self.calls: list[tuple[BuildRef, list[str], Path, bool]] = []

    @property
    def profile_id(self) -> str:
        return self._profile_id

    def download(
        self,
        build: BuildRef,
        entries: list[ManifestEntry],
        target_dir: Path,
        flatten: bool,
    ) -> list[ArtifactRecord]:
        self.calls.append((build, [e.path for e in entries], target_dir, flatten))
        if self.fail:
            raise ArtifactDownloadError("connection reset by peer")
        records = []
        for entry in entries:
            rel = Path(entry.path)
            dest = target_dir / (rel.name if flatten else rel)
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_text(entry.digest, encoding="utf-8")
            records.append(ArtifactRecord(name=entry.path, digest=entry.digest))
        return records


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def settings() -> RelayConfig:
    return RelayConfig()


@pytest.fixture
def catalog() -> HostCatalog:
    """In-memory catalog with an upstream job and a downstream job."""
    catalog = HostCatalog()
    upstream = catalog.add_job(JobHandle(full_name="Upstream", parameter_names=["FLAVOR"]))
    for number, result, flavor in (
        (1, BuildResult.SUCCESS, "debug"),
        (2, BuildResult.SUCCESS, "release"),
        (3, BuildResult.FAILURE, "release"),
    ):
        upstream.builds.append(
            BuildHandle(
                job_name="Upstream",
                number=number,
                result=result,
                parameters={"FLAVOR": flavor},
            )
        )
    catalog.add_job(JobHandle(full_name="Downstream", parameter_names=["SOURCE"]))
    return catalog


@pytest.fixture
def workspace(tmp_dir: Path) -> Path:
    ws = tmp_dir / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def destination(catalog: HostCatalog, workspace: Path) -> BuildHandle:
    """A running Downstream build with a workspace and an env record."""
    build = catalog.add_build(
        "Downstream", BuildHandle(job_name="Downstream", number=7, workspace=workspace)
    )
    catalog.set_copy_steps("Downstream", [configure_copy_step("Upstream", catalog)])
    return catalog.start_build(build)


@pytest.fixture
def fake_profile() -> FakeProfile:
    return FakeProfile()


@pytest.fixture
def bucket(tmp_dir: Path) -> LocalBucketProfile:
    return LocalBucketProfile("default", tmp_dir / "storage")


@pytest.fixture
def profiles(fake_profile: FakeProfile, bucket: LocalBucketProfile) -> ProfileRegistry:
    return ProfileRegistry([fake_profile, bucket])


@pytest.fixture
def fingerprint_store(tmp_dir: Path) -> FingerprintStore:
    """Provide a fresh FingerprintStore backed by a temp SQLite database."""
    return FingerprintStore(tmp_dir / "fingerprints.db")


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def set_manifest(catalog: HostCatalog) -> Callable[..., ArtifactManifest]:
    """Factory fixture: attach a manifest of ``path -> digest`` pairs to a build."""

    def _factory(
        build: BuildHandle, entries: dict[str, str], profile_id: str = "fake"
    ) -> ArtifactManifest:
        manifest = ArtifactManifest(
            profile_id=profile_id,
            entries=[ManifestEntry(path=p, digest=d) for p, d in entries.items()],
        )
        catalog.set_manifest(build.ref, manifest)
        return manifest

    return _factory


@pytest.fixture
def publish(
    catalog: HostCatalog, bucket: LocalBucketProfile, tmp_dir: Path
) -> Callable[..., ArtifactManifest]:
    """Factory fixture: upload real files for a build into the local bucket."""

    def _factory(build: BuildHandle, files: dict[str, bytes]) -> ArtifactManifest:
        src = tmp_dir / "uploads" / build.job_name.replace("/", "_") / str(build.number)
        for rel, data in files.items():
            path = src / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        manifest = bucket.upload(src, list(files))
        catalog.set_manifest(build.ref, manifest)
        return manifest

    return _factory


@pytest.fixture
def make_step(
    catalog: HostCatalog,
    profiles: ProfileRegistry,
    fingerprint_store: FingerprintStore,
    settings: RelayConfig,
) -> Callable[..., CopyArtifactStep]:
    """Factory fixture: a CopyArtifactStep wired to the test host."""

    def _factory(project_name: str = "Upstream", *, settings_override: RelayConfig | None = None, **options) -> CopyArtifactStep:
        step_config = configure_copy_step(project_name, catalog, **options)
        return CopyArtifactStep(
            step_config,
            catalog,
            profiles,
            fingerprint_store,
            settings=settings_override or settings,
        )

    return _factory
