"""Directory-backed object store profile.

Objects are content-addressed and immutable:
``{root}/{sha256[0:2]}/{sha256[2:4]}/{sha256}.dat``.  Uploading a build's
files yields the manifest (relative path plus digest per file) that the
host attaches to that build; downloading resolves each manifest entry by
digest and writes it under the requested target directory.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from artifactrelay.core.hasher import file_digest
from artifactrelay.core.replicator import ArtifactDownloadError
from artifactrelay.models.artifacts import ArtifactManifest, ArtifactRecord, ManifestEntry
from artifactrelay.models.builds import BuildRef

logger = logging.getLogger(__name__)


class ArtifactIntegrityError(ArtifactDownloadError):
    """Raised when a stored object's bytes do not match its digest."""


class UnsafeArtifactPathError(ValueError):
    """Raised for absolute manifest paths or paths escaping their root."""


class LocalBucketProfile:
    """A storage profile whose bucket is a local directory.

    Parameters
    ----------
    profile_id:
        The id manifests use to refer to this profile.
    root:
        Root directory for object storage.  Created if missing.
    """

    def __init__(self, profile_id: str, root: Path) -> None:
        self._profile_id = profile_id
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def profile_id(self) -> str:
        return self._profile_id

    @property
    def root(self) -> Path:
        return self._root

    def _object_path(self, digest: str) -> Path:
        return self._root / digest[:2] / digest[2:4] / f"{digest}.dat"

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(self, base_dir: Path, paths: Iterable[str]) -> ArtifactManifest:
        """Store files under *base_dir* and return their manifest.

        Storing identical content twice is a no-op.
        """
        entries: list[ManifestEntry] = []
        for rel in paths:
            relative = _safe_relative(rel)
            source = Path(base_dir) / relative
            digest = file_digest(source)
            if not self.exists(digest):
                dest = self._object_path(digest)
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, dest)
            entries.append(
                ManifestEntry(
                    path=relative.as_posix(),
                    digest=digest,
                    size_bytes=source.stat().st_size,
                )
            )
        return ArtifactManifest(profile_id=self._profile_id, entries=entries)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def download(
        self,
        build: BuildRef,
        entries: list[ManifestEntry],
        target_dir: Path,
        flatten: bool,
    ) -> list[ArtifactRecord]:
        records: list[ArtifactRecord] = []
        for entry in entries:
            try:
                relative = _safe_relative(entry.path)
            except UnsafeArtifactPathError as exc:
                raise ArtifactDownloadError(str(exc)) from exc
            dest = Path(target_dir) / (relative.name if flatten else relative)
            source = self._object_path(entry.digest)
            if not source.exists():
                raise ArtifactDownloadError(
                    f"Object {entry.digest} for {entry.path} of {build} is missing from "
                    f"profile {self._profile_id!r}"
                )
            if file_digest(source) != entry.digest:
                raise ArtifactIntegrityError(
                    f"Stored object for {entry.path} of {build} failed integrity check"
                )
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(source, dest)
            except OSError as exc:
                raise ArtifactDownloadError(f"Failed to write {dest}: {exc}") from exc
            logger.debug("Downloaded %s of %s to %s", entry.path, build, dest)
            records.append(ArtifactRecord(name=entry.path, digest=entry.digest))
        return records

    def exists(self, digest: str) -> bool:
        return self._object_path(digest).exists()


def _safe_relative(path: str) -> PurePosixPath:
    """Normalize a manifest path, refusing absolute or escaping paths."""
    relative = PurePosixPath(path.replace("\\", "/"))
    if relative.is_absolute() or ".." in relative.parts or not relative.parts:
        raise UnsafeArtifactPathError(f"Refusing unsafe artifact path {path!r}")
    return relative
