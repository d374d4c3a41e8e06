"""Migrate CVS history into Git and keep the two synchronised."""

__version__ = "0.1.0"

from .config import MigrationConfig, SyncConfig, SyncDirection
from .core import MigrationReport, Migrator, SyncReport, Syncer
from .exceptions import MigrationInterrupted, MigratorError
from .progress import ProgressReporter

__all__ = [
    "MigrationConfig",
    "MigrationInterrupted",
    "MigrationReport",
    "Migrator",
    "MigratorError",
    "ProgressReporter",
    "SyncConfig",
    "SyncDirection",
    "SyncReport",
    "Syncer",
    "__version__",
]
