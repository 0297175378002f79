"""Artifact manifest, copy-unit, and fingerprint models (all frozen)."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from artifactrelay.models.builds import BuildHandle, BuildRef


class ManifestEntry(BaseModel):
    """One artifact recorded by the object store at upload time."""

    model_config = ConfigDict(frozen=True)

    path: str  # relative, POSIX separators
    digest: str
    size_bytes: int = 0


class ArtifactManifest(BaseModel):
    """The artifacts an object store holds for one build."""

    model_config = ConfigDict(frozen=True)

    profile_id: str
    entries: list[ManifestEntry] = Field(default_factory=list)


class ArtifactRecord(BaseModel):
    """An artifact that was copied, with its upload-time digest."""

    model_config = ConfigDict(frozen=True)

    name: str
    digest: str


class CopyUnit(BaseModel):
    """One (source build, target subdirectory) pair to replicate.

    ``target_subdir`` is relative to the step's target directory; an empty
    string means the target directory itself.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    source_build: BuildHandle
    target_subdir: str = ""


class FingerprintEntry(BaseModel):
    """Durable provenance record for one ``(name, digest)`` pair."""

    model_config = ConfigDict(frozen=True)

    name: str
    digest: str
    original: BuildRef | None = None
    usages: list[BuildRef] = Field(default_factory=list)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def is_used_by(self, build: BuildRef) -> bool:
        return build in self.usages
