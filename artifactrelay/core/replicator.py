"""Artifact replication for a single copy unit.

The replicator looks up the object-store manifest of the unit's source
build, filters it, and asks the storage profile named by the manifest to
download the matching entries into the target directory.  Digests come
from the manifest (computed at upload time); nothing is re-hashed here.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from artifactrelay.core.globbing import select_entries
from artifactrelay.models.artifacts import ArtifactManifest, ArtifactRecord, CopyUnit, ManifestEntry
from artifactrelay.models.builds import BuildHandle, BuildRef

if TYPE_CHECKING:
    from artifactrelay.core.copier import BuildListener

logger = logging.getLogger(__name__)


class StorageUnavailableError(RuntimeError):
    """Raised when a manifest's storage profile cannot be resolved."""


class ArtifactDownloadError(OSError):
    """Raised when artifact bytes cannot be fetched or written."""


@runtime_checkable
class StorageProfile(Protocol):
    """An object-store context (bucket plus credentials) that can download."""

    @property
    def profile_id(self) -> str:
        ...

    def download(
        self,
        build: BuildRef,
        entries: list[ManifestEntry],
        target_dir: Path,
        flatten: bool,
    ) -> list[ArtifactRecord]:
        """Fetch *entries* of *build* into *target_dir*.

        With *flatten*, every file lands directly in *target_dir* and the
        last of several same-named entries wins.  Raises
        ``ArtifactDownloadError`` on any transport or write failure.
        """
        ...


@runtime_checkable
class ManifestLookup(Protocol):
    def get_artifact_manifest(self, build: BuildHandle) -> ArtifactManifest | None:
        ...


class ProfileRegistry:
    """Storage profiles by id."""

    def __init__(self, profiles: list[StorageProfile] | None = None) -> None:
        self._profiles: dict[str, StorageProfile] = {}
        self._lock = threading.Lock()
        for profile in profiles or []:
            self.register(profile)

    def register(self, profile: StorageProfile) -> None:
        with self._lock:
            self._profiles[profile.profile_id] = profile

    def get(self, profile_id: str) -> StorageProfile | None:
        with self._lock:
            return self._profiles.get(profile_id)

    def require(self, profile_id: str) -> StorageProfile:
        profile = self.get(profile_id)
        if profile is None:
            raise StorageUnavailableError(f"Can't find storage profile {profile_id!r}")
        return profile


class ArtifactReplicator:
    """Copies one unit's stored artifacts into a target directory.

    Parameters
    ----------
    manifests:
        Host lookup of the manifest attached to a build.
    profiles:
        Registry resolving a manifest's ``profile_id``.
    """

    def __init__(self, manifests: ManifestLookup, profiles: ProfileRegistry) -> None:
        self._manifests = manifests
        self._profiles = profiles

    def replicate(
        self,
        unit: CopyUnit,
        target_dir: Path,
        glob_filter: str,
        flatten: bool,
        listener: BuildListener,
    ) -> list[ArtifactRecord] | None:
        """Copy the unit's matching artifacts.

        Returns the copied records in manifest order, or ``None`` when the
        source build has no manifest at all.  Raises
        ``StorageUnavailableError`` if the manifest's profile is unknown and
        ``ArtifactDownloadError`` if the download fails.
        """
        source = unit.source_build
        manifest = self._manifests.get_artifact_manifest(source)
        if manifest is None:
            listener.println(
                f"Build {source.job_name}[{source.number}] doesn't have any "
                "artifacts uploaded to remote storage"
            )
            return None

        profile = self._profiles.require(manifest.profile_id)

        selected = select_entries(manifest.entries, glob_filter)
        logger.debug(
            "%s: %d of %d manifest entries match %r",
            source.display_name,
            len(selected),
            len(manifest.entries),
            glob_filter,
        )
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArtifactDownloadError(f"Cannot create target directory {target_dir}: {exc}") from exc
        if not selected:
            return []

        downloaded = profile.download(source.ref, selected, target_dir, flatten)
        # Keep manifest order regardless of how the profile reports back.
        order = {entry.path: index for index, entry in enumerate(selected)}
        return sorted(downloaded, key=lambda record: order.get(record.name, len(order)))
