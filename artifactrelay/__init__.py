"""Artifactrelay: copy stored build artifacts between CI builds.

Given a source job, a build selector and a destination build, the copy step
finds the upstream build, resolves the artifacts an object store holds for
it, replicates a filtered subset into the destination workspace and records
fingerprints linking the two builds.
"""

__version__ = "0.2.0"

from artifactrelay.core.copier import CopyArtifactStep, configure_copy_step
from artifactrelay.models.step import CopyArtifactConfig, CopyOutcome

__all__ = [
    "CopyArtifactStep",
    "CopyArtifactConfig",
    "CopyOutcome",
    "configure_copy_step",
    "__version__",
]
