"""Migration checkpoint persistence.

Checkpoints live in a small SQLite database (one row per migration ID) so
an interrupted migration can be resumed from the last saved commit.

Key design choices:

* **Deterministic key** -- ``migration_id()`` hashes the source and target
  paths, so re-running the same migration finds the same row.
* **Single writer** -- one connection per store, with a bounded busy
  timeout for transient lock contention.
* **Explicit completion** -- ``complete()`` is separate from ``save()`` so
  a finished migration is distinguishable from one checkpointed at its
  last commit.
"""

from __future__ import annotations

import hashlib
import logging
import sqlite3
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from git_migrator.exceptions import CheckpointNotFound, StateError

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_SECONDS = 5.0

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS migration_state (
        migration_id TEXT PRIMARY KEY,
        last_commit TEXT,
        processed INTEGER,
        total INTEGER,
        source_path TEXT,
        target_path TEXT,
        last_updated TEXT,
        status TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_status ON migration_state(status)",
    "CREATE INDEX IF NOT EXISTS idx_last_updated "
    "ON migration_state(last_updated)",
)

_COLUMNS = (
    "migration_id, last_commit, processed, total, "
    "source_path, target_path, last_updated, status"
)


class MigrationStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MigrationState(BaseModel):
    """Persisted progress of one migration.

    Attributes:
        migration_id: Deterministic ID from ``migration_id()``.
        last_commit: Revision of the last commit applied to the target.
        processed: Number of commits processed so far.
        total: Number of commits in the source when the run started.
        source_path: Source repository path.
        target_path: Target repository path.
        last_updated: Time of the last save.
        status: ``in_progress`` or ``completed``.
    """

    migration_id: str
    last_commit: str = ""
    processed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    source_path: str = ""
    target_path: str = ""
    last_updated: datetime | None = None
    status: MigrationStatus = MigrationStatus.IN_PROGRESS

    @model_validator(mode="after")
    def _processed_within_total(self) -> MigrationState:
        if self.total and self.processed > self.total:
            raise ValueError(
                f"processed ({self.processed}) exceeds total ({self.total})"
            )
        return self


def migration_id(source_path: str, target_path: str) -> str:
    """Return the checkpoint key for a source/target pair.

    The first 8 bytes of ``sha256("source:target")``, hex encoded.
    """
    digest = hashlib.sha256(f"{source_path}:{target_path}".encode("utf-8"))
    return digest.digest()[:8].hex()


class CheckpointStore:
    """SQLite-backed store of ``MigrationState`` rows.

    Args:
        path: Database file.  Parent directories are created.

    Raises:
        StateError: If the database cannot be opened or initialised.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self.path), timeout=BUSY_TIMEOUT_SECONDS
            )
            for statement in _SCHEMA:
                self._conn.execute(statement)
            self._conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StateError(
                f"failed to open checkpoint store {self.path}: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> CheckpointStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, state: MigrationState) -> None:
        """Insert or replace the row for ``state.migration_id``.

        ``last_updated`` is stamped with the current UTC time.
        """
        now = datetime.now(timezone.utc)
        try:
            self._conn.execute(
                f"INSERT OR REPLACE INTO migration_state ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    state.migration_id,
                    state.last_commit,
                    state.processed,
                    state.total,
                    state.source_path,
                    state.target_path,
                    now.isoformat(),
                    state.status.value,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StateError(
                f"failed to save checkpoint {state.migration_id}: {exc}"
            ) from exc

    def load(self, migration_id: str) -> MigrationState:
        """Return the stored state for *migration_id*.

        Raises:
            CheckpointNotFound: If no row exists.
            StateError: If the row cannot be read.
        """
        try:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM migration_state "
                "WHERE migration_id = ?",
                (migration_id,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StateError(
                f"failed to load checkpoint {migration_id}: {exc}"
            ) from exc
        if row is None:
            raise CheckpointNotFound(migration_id)
        return self._row_to_state(row)

    def complete(self, migration_id: str) -> None:
        """Mark *migration_id* as completed.

        Raises:
            CheckpointNotFound: If no row exists.
        """
        try:
            cursor = self._conn.execute(
                "UPDATE migration_state SET status = ?, last_updated = ? "
                "WHERE migration_id = ?",
                (
                    MigrationStatus.COMPLETED.value,
                    datetime.now(timezone.utc).isoformat(),
                    migration_id,
                ),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StateError(
                f"failed to complete checkpoint {migration_id}: {exc}"
            ) from exc
        if cursor.rowcount == 0:
            raise CheckpointNotFound(migration_id)

    def delete(self, migration_id: str) -> None:
        """Remove the row for *migration_id*.  No-op if absent."""
        try:
            self._conn.execute(
                "DELETE FROM migration_state WHERE migration_id = ?",
                (migration_id,),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StateError(
                f"failed to delete checkpoint {migration_id}: {exc}"
            ) from exc

    def history(self) -> list[MigrationState]:
        """All stored migrations, most recently updated first."""
        try:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM migration_state "
                "ORDER BY last_updated DESC"
            ).fetchall()
        except sqlite3.Error as exc:
            raise StateError(f"failed to read history: {exc}") from exc
        return [self._row_to_state(row) for row in rows]

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_state(row: tuple) -> MigrationState:
        try:
            return MigrationState(
                migration_id=row[0],
                last_commit=row[1] or "",
                processed=row[2] or 0,
                total=row[3] or 0,
                source_path=row[4] or "",
                target_path=row[5] or "",
                last_updated=row[6],
                status=row[7] or MigrationStatus.IN_PROGRESS,
            )
        except ValueError as exc:
            raise StateError(
                f"corrupt checkpoint row for {row[0]}: {exc}"
            ) from exc
