"""Durable fingerprint store and the copy-step fingerprint linker.

A fingerprint is keyed by ``(artifact name, digest)`` and holds the set of
builds that produced or consumed that artifact version.

Design:
- Additive: associations are only ever inserted, never removed.
- Idempotent: re-linking the same build is a no-op (composite primary keys).
- Atomic per artifact: create-or-merge runs in one ``BEGIN IMMEDIATE``
  transaction, serialized per key within the process by a striped lock.
- WAL journal mode so concurrent unrelated builds can read while one writes.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from artifactrelay.models.artifacts import ArtifactRecord, FingerprintEntry
from artifactrelay.models.builds import BuildHandle, BuildRef

logger = logging.getLogger(__name__)

# Number of striped per-key locks in each store.
LOCK_STRIPES = 64


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

_CREATE_FINGERPRINTS = """
CREATE TABLE IF NOT EXISTS fingerprints (
    name              TEXT NOT NULL,
    digest            TEXT NOT NULL,
    original_job      TEXT,
    original_number   INTEGER,
    created_utc       TEXT NOT NULL,
    PRIMARY KEY (name, digest)
);
"""

_CREATE_USAGES = """
CREATE TABLE IF NOT EXISTS fingerprint_usages (
    name          TEXT NOT NULL,
    digest        TEXT NOT NULL,
    job_name      TEXT NOT NULL,
    build_number  INTEGER NOT NULL,
    PRIMARY KEY (name, digest, job_name, build_number),
    FOREIGN KEY (name, digest) REFERENCES fingerprints(name, digest)
);
"""

_CREATE_IDX_USAGE_BUILD = """
CREATE INDEX IF NOT EXISTS idx_usage_build ON fingerprint_usages(job_name, build_number);
"""


class FingerprintStoreError(RuntimeError):
    """Raised when the fingerprint database cannot be read or written."""


class FingerprintStore:
    """SQLite-backed fingerprint map shared by every build on the host.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file. Created if it does not exist.
    timeout:
        Seconds to wait for another process's write lock.
    """

    def __init__(self, db_path: Path, *, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = timeout
        self._lock_stripes = tuple(threading.Lock() for _ in range(LOCK_STRIPES))
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path),
            timeout=self._timeout,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute(_CREATE_FINGERPRINTS)
            conn.execute(_CREATE_USAGES)
            conn.execute(_CREATE_IDX_USAGE_BUILD)
        finally:
            conn.close()

    def _lock_for(self, name: str, digest: str) -> threading.Lock:
        return self._lock_stripes[hash((name, digest)) % len(self._lock_stripes)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def link(
        self,
        owner: BuildRef | None,
        name: str,
        digest: str,
        builds: Iterable[BuildRef],
    ) -> FingerprintEntry:
        """Obtain-or-create the fingerprint and associate *builds* with it.

        *owner* is recorded as the original build only when the fingerprint
        is first created.  The whole operation commits or rolls back as one.
        """
        builds = list(builds)
        with self._lock_for(name, digest):
            conn = self._connect()
            try:
                conn.execute("BEGIN IMMEDIATE")
                conn.execute(
                    """
                    INSERT OR IGNORE INTO fingerprints
                        (name, digest, original_job, original_number, created_utc)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        name,
                        digest,
                        owner.job_name if owner else None,
                        owner.number if owner else None,
                        datetime.now(timezone.utc).isoformat(),
                    ),
                )
                conn.executemany(
                    """
                    INSERT OR IGNORE INTO fingerprint_usages
                        (name, digest, job_name, build_number)
                    VALUES (?, ?, ?, ?)
                    """,
                    [(name, digest, b.job_name, b.number) for b in builds],
                )
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise FingerprintStoreError(
                    f"Failed to record fingerprint {name} ({digest}): {exc}"
                ) from exc
            finally:
                conn.close()
        entry = self.get(name, digest)
        if entry is None:
            raise FingerprintStoreError(f"Fingerprint {name} ({digest}) vanished after commit")
        return entry

    def get_or_create(self, owner: BuildRef | None, name: str, digest: str) -> FingerprintEntry:
        """Return the fingerprint for ``(name, digest)``, creating it if absent."""
        return self.link(owner, name, digest, [])

    def associate(self, name: str, digest: str, build: BuildRef) -> FingerprintEntry:
        """Register *build* as a user of an existing or new fingerprint."""
        return self.link(None, name, digest, [build])

    # ------------------------------------------------------------------
    # Queries (read-only)
    # ------------------------------------------------------------------

    def get(self, name: str, digest: str) -> FingerprintEntry | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT original_job, original_number, created_utc FROM fingerprints "
                "WHERE name = ? AND digest = ?",
                (name, digest),
            ).fetchone()
            if row is None:
                return None
            usages = conn.execute(
                "SELECT job_name, build_number FROM fingerprint_usages "
                "WHERE name = ? AND digest = ? ORDER BY job_name, build_number",
                (name, digest),
            ).fetchall()
        finally:
            conn.close()
        original_job, original_number, created_utc = row
        return FingerprintEntry(
            name=name,
            digest=digest,
            original=(
                BuildRef(job_name=original_job, number=original_number)
                if original_job is not None
                else None
            ),
            usages=[BuildRef(job_name=j, number=n) for j, n in usages],
            created_at=created_utc,
        )

    def find_by_digest(self, digest: str) -> list[FingerprintEntry]:
        """All fingerprints with *digest*, whatever the artifact name."""
        conn = self._connect()
        try:
            names = [
                row[0]
                for row in conn.execute(
                    "SELECT name FROM fingerprints WHERE digest = ? ORDER BY name",
                    (digest,),
                ).fetchall()
            ]
        finally:
            conn.close()
        return [entry for entry in (self.get(n, digest) for n in names) if entry]

    def used_by(self, build: BuildRef) -> list[FingerprintEntry]:
        """Fingerprints associated with *build*."""
        conn = self._connect()
        try:
            keys = conn.execute(
                "SELECT name, digest FROM fingerprint_usages "
                "WHERE job_name = ? AND build_number = ? ORDER BY name",
                (build.job_name, build.number),
            ).fetchall()
        finally:
            conn.close()
        return [entry for entry in (self.get(n, d) for n, d in keys) if entry]


# ---------------------------------------------------------------------------
# Linker
# ---------------------------------------------------------------------------


@runtime_checkable
class FingerprintSummaries(Protocol):
    """Host capability: merge ``name -> digest`` pairs into a build record."""

    def attach_or_merge_summary(self, build: BuildHandle, pairs: dict[str, str]) -> None:
        ...


class FingerprintLinker:
    """Records provenance between a source and destination build.

    Every copied artifact gets a durable fingerprint used by both builds,
    and each build that can carry a fingerprint summary has the new pairs
    merged into it.
    """

    def __init__(self, store: FingerprintStore, summaries: FingerprintSummaries) -> None:
        self._store = store
        self._summaries = summaries

    def link(
        self,
        records: list[ArtifactRecord],
        source: BuildHandle,
        destination: BuildHandle,
    ) -> dict[str, str]:
        """Link *records*; returns the ``name -> digest`` pairs recorded."""
        fingerprints: dict[str, str] = {}
        for record in records:
            self._store.link(
                source.ref,
                record.name,
                record.digest,
                [source.ref, destination.ref],
            )
            fingerprints[record.name] = record.digest
        if not fingerprints:
            return fingerprints

        for build in (source, destination):
            if build.carries_fingerprints:
                self._summaries.attach_or_merge_summary(build, fingerprints)
        logger.debug(
            "Linked %d fingerprint(s) %s -> %s",
            len(fingerprints),
            source.display_name,
            destination.display_name,
        )
        return fingerprints
