"""Artifactrelay data models — Pydantic v2; value objects are frozen.

Step configuration models live in ``artifactrelay.models.step``; they depend
on the selector registry and are imported from there directly.
"""

from artifactrelay.models.artifacts import (
    ArtifactManifest,
    ArtifactRecord,
    CopyUnit,
    FingerprintEntry,
    ManifestEntry,
)
from artifactrelay.models.builds import (
    AxisFanOut,
    BuildHandle,
    BuildRef,
    BuildResult,
    JobHandle,
    ModuleAggregate,
    PlainBuild,
    ProjectType,
)

__all__ = [
    # builds
    "BuildResult",
    "ProjectType",
    "BuildRef",
    "PlainBuild",
    "ModuleAggregate",
    "AxisFanOut",
    "BuildHandle",
    "JobHandle",
    # artifacts
    "ManifestEntry",
    "ArtifactManifest",
    "ArtifactRecord",
    "CopyUnit",
    "FingerprintEntry",
]
