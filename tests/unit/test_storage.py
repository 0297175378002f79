"""Tests for the directory-backed storage profile."""

from __future__ import annotations

from pathlib import Path

import pytest

from artifactrelay.core.hasher import sha256_hex
from artifactrelay.core.replicator import ArtifactDownloadError, StorageProfile
from artifactrelay.core.storage import (
    ArtifactIntegrityError,
    LocalBucketProfile,
    UnsafeArtifactPathError,
)
from artifactrelay.models.artifacts import ManifestEntry
from artifactrelay.models.builds import BuildRef

REF = BuildRef(job_name="Upstream", number=2)


@pytest.fixture
def uploads(tmp_dir: Path) -> Path:
    base = tmp_dir / "src"
    (base / "build").mkdir(parents=True)
    (base / "build" / "x.zip").write_bytes(b"zip bytes")
    (base / "notes.txt").write_bytes(b"notes")
    return base


class TestUpload:
    def test_manifest(self, bucket: LocalBucketProfile, uploads: Path):
        manifest = bucket.upload(uploads, ["build/x.zip", "notes.txt"])
        assert manifest.profile_id == "default"
        assert [e.path for e in manifest.entries] == ["build/x.zip", "notes.txt"]
        assert manifest.entries[0].digest == sha256_hex(b"zip bytes")
        assert manifest.entries[0].size_bytes == len(b"zip bytes")
        assert bucket.exists(manifest.entries[0].digest)

    def test_content_addressed(self, bucket: LocalBucketProfile, uploads: Path):
        (uploads / "copy.zip").write_bytes(b"zip bytes")
        manifest = bucket.upload(uploads, ["build/x.zip", "copy.zip"])
        assert manifest.entries[0].digest == manifest.entries[1].digest
        assert len(list(bucket.root.rglob("*.dat"))) == 1

    def test_windows_separators_normalized(self, bucket: LocalBucketProfile, uploads: Path):
        manifest = bucket.upload(uploads, ["build\\x.zip"])
        assert manifest.entries[0].path == "build/x.zip"

    @pytest.mark.parametrize("path", ["../escape", "/etc/passwd", ""])
    def test_unsafe_path(self, bucket: LocalBucketProfile, uploads: Path, path: str):
        with pytest.raises(UnsafeArtifactPathError):
            bucket.upload(uploads, [path])

    def test_satisfies_profile_protocol(self, bucket: LocalBucketProfile):
        assert isinstance(bucket, StorageProfile)


class TestDownload:
    def test_preserves_structure(self, bucket: LocalBucketProfile, uploads: Path, tmp_dir: Path):
        manifest = bucket.upload(uploads, ["build/x.zip"])
        target = tmp_dir / "ws"
        records = bucket.download(REF, manifest.entries, target, False)
        assert (target / "build" / "x.zip").read_bytes() == b"zip bytes"
        assert records[0].name == "build/x.zip"
        assert records[0].digest == manifest.entries[0].digest

    def test_flatten(self, bucket: LocalBucketProfile, uploads: Path, tmp_dir: Path):
        manifest = bucket.upload(uploads, ["build/x.zip"])
        target = tmp_dir / "ws"
        records = bucket.download(REF, manifest.entries, target, True)
        assert (target / "x.zip").exists()
        assert records[0].name == "build/x.zip"

    def test_missing_object(self, bucket: LocalBucketProfile, tmp_dir: Path):
        entry = ManifestEntry(path="a.bin", digest="ab" * 32)
        with pytest.raises(ArtifactDownloadError, match="missing"):
            bucket.download(REF, [entry], tmp_dir / "ws", False)

    def test_corrupted_object(self, bucket: LocalBucketProfile, uploads: Path, tmp_dir: Path):
        manifest = bucket.upload(uploads, ["notes.txt"])
        stored = next(bucket.root.rglob("*.dat"))
        stored.write_bytes(b"tampered")
        with pytest.raises(ArtifactIntegrityError):
            bucket.download(REF, manifest.entries, tmp_dir / "ws", False)
        assert not (tmp_dir / "ws" / "notes.txt").exists()

    def test_escaping_manifest_path(self, bucket: LocalBucketProfile, uploads: Path, tmp_dir: Path):
        digest = bucket.upload(uploads, ["notes.txt"]).entries[0].digest
        entry = ManifestEntry(path="../../outside.txt", digest=digest)
        with pytest.raises(ArtifactDownloadError):
            bucket.download(REF, [entry], tmp_dir / "ws", False)
        assert not (tmp_dir / "outside.txt").exists()
