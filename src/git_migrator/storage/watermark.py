"""Sync watermark persistence.

A sync run keeps two independent watermarks, one per direction, in a
single JSON file:

* ``last_git_commit`` -- hash of the last Git commit exported to the
  source repository.
* ``last_source_sync`` -- date of the last source commit imported into Git.

Key design choices:

* **Missing is empty** -- an absent file is a zero state, never an error.
* **Corrupt is fatal** -- an unparsable file raises ``StateError`` so the
  watermarks are never silently reset.
* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from git_migrator.exceptions import StateError

logger = logging.getLogger(__name__)


class SyncState(BaseModel):
    """Per-direction sync watermarks.

    Attributes:
        last_git_commit: Last Git revision synced to the source, or ``""``.
        last_source_sync: Date of the last source commit synced to Git.
        synced_at: Wall-clock time of the last save.
    """

    last_git_commit: str = ""
    last_source_sync: datetime | None = None
    synced_at: datetime | None = None

    @property
    def is_zero(self) -> bool:
        return not self.last_git_commit and self.last_source_sync is None

    def advance_source(self, date: datetime) -> None:
        """Move ``last_source_sync`` forward to *date*; never backwards."""
        if self.last_source_sync is None or date > self.last_source_sync:
            self.last_source_sync = date


class WatermarkFile:
    """Read and write a ``SyncState`` JSON file.

    Args:
        path: Location of the state file.  ``None`` disables persistence:
            ``load()`` returns a zero state and ``save()`` does nothing.
    """

    def __init__(self, path: Path | str | None) -> None:
        self.path = Path(path) if path else None

    def load(self) -> SyncState:
        """Return the persisted state, or a zero state if there is none.

        Raises:
            StateError: If the file exists but cannot be read or parsed.
        """
        if self.path is None or not self.path.exists():
            return SyncState()
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StateError(
                f"failed to read state file {self.path}: {exc}"
            ) from exc
        try:
            return SyncState.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            raise StateError(
                f"failed to parse state file {self.path}: {exc}"
            ) from exc

    def save(self, state: SyncState) -> None:
        """Persist *state* atomically, stamping ``synced_at``.

        Raises:
            StateError: If the file cannot be written.
        """
        if self.path is None:
            return
        state.synced_at = datetime.now(timezone.utc)

        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(directory), suffix=".tmp"
            )
        except OSError as exc:
            raise StateError(
                f"failed to write state file {self.path}: {exc}"
            ) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(state.model_dump_json(indent=2))
            os.replace(tmp_path, self.path)
        except BaseException as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise StateError(
                    f"failed to write state file {self.path}: {exc}"
                ) from exc
            raise
