"""Configuration models for migration and sync runs.

Defines Pydantic models passed explicitly to the orchestrators:

- ``MigrationConfig``: one-way source -> Git migration settings.
- ``SyncConfig``: Git <-> source synchronisation settings.
- ``SyncDirection``: Enum of sync directions.

``validate_migration_config()`` / ``validate_sync_config()`` check the
required fields and raise ``ConfigurationError`` before any I/O happens.

Usage:
    from git_migrator.config import MigrationConfig

    config = MigrationConfig(
        source_type="cvs",
        source_path="/srv/cvsroot/project",
        target_path="/srv/git/project",
        author_map={"alice": "Alice Smith <alice@example.com>"},
    )
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from git_migrator.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100
STATE_DB_NAME = ".migration-state.db"


class SyncDirection(str, Enum):
    """Which way(s) a sync run propagates commits."""

    GIT_TO_SOURCE = "git-to-source"
    SOURCE_TO_GIT = "source-to-git"
    BIDIRECTIONAL = "bidirectional"


_DIRECTION_ALIASES = {
    "git-to-cvs": SyncDirection.GIT_TO_SOURCE,
    "cvs-to-git": SyncDirection.SOURCE_TO_GIT,
}


class MigrationConfig(BaseModel):
    """Settings for a one-way migration into Git.

    ``chunk_size`` is the checkpoint interval in commits.  ``0`` disables
    periodic checkpoints; only the final completion record is written.
    ``interrupt_at`` stops the run after that many commits and exists for
    exercising resume in tests.
    """

    source_type: str = Field(default="cvs", description="Source kind")
    source_path: str = Field(default="", description="Source repository")
    target_path: str = Field(default="", description="Target Git repository")
    author_map: dict[str, str] = Field(default_factory=dict)
    branch_map: dict[str, str] = Field(default_factory=dict)
    tag_map: dict[str, str] = Field(default_factory=dict)
    dry_run: bool = False
    resume: bool = False
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=0)
    state_file: str | None = Field(
        default=None,
        description="Checkpoint database (default: <target>/.migration-state.db)",
    )
    interrupt_at: int = Field(default=0, ge=0)

    def resolved_state_file(self) -> Path:
        """Checkpoint database path, defaulting inside the target."""
        if self.state_file:
            return Path(self.state_file)
        return Path(self.target_path) / STATE_DB_NAME


class SyncConfig(BaseModel):
    """Settings for Git <-> source synchronisation.

    ``source_work_dir`` is used verbatim for the source checkout when set;
    otherwise a temporary directory is created and removed per run.
    ``state_file`` of ``None`` disables watermark persistence.
    """

    git_path: str = ""
    source_type: str = "cvs"
    source_path: str = ""
    source_module: str = ""
    source_work_dir: str | None = None
    direction: SyncDirection = SyncDirection.BIDIRECTIONAL
    author_map: dict[str, str] = Field(default_factory=dict)
    state_file: str | None = None
    dry_run: bool = False

    @field_validator("direction", mode="before")
    @classmethod
    def _accept_direction_aliases(cls, value: object) -> object:
        if isinstance(value, str):
            return _DIRECTION_ALIASES.get(value, value)
        return value


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_migration_config(config: MigrationConfig) -> None:
    """Raise ``ConfigurationError`` if required migration fields are missing."""
    if not config.source_type.strip():
        raise ConfigurationError("source type is required")
    if not config.source_path.strip():
        raise ConfigurationError("source path is required")
    if not config.target_path.strip():
        raise ConfigurationError("target path is required")


def validate_sync_config(config: SyncConfig) -> None:
    """Raise ``ConfigurationError`` if required sync fields are missing.

    The source module is only needed when commits flow into the source.
    """
    if not config.git_path.strip():
        raise ConfigurationError("git path is required")
    if not config.source_path.strip():
        raise ConfigurationError("source path is required")
    if (
        config.direction != SyncDirection.SOURCE_TO_GIT
        and not config.source_module.strip()
    ):
        raise ConfigurationError(
            f"source module is required for direction {config.direction.value}"
        )
