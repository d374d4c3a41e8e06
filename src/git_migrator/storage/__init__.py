"""Persistent run state: migration checkpoints and sync watermarks."""

from .checkpoint import (
    CheckpointStore,
    MigrationState,
    MigrationStatus,
    migration_id,
)
from .watermark import SyncState, WatermarkFile

__all__ = [
    "CheckpointStore",
    "MigrationState",
    "MigrationStatus",
    "SyncState",
    "WatermarkFile",
    "migration_id",
]
