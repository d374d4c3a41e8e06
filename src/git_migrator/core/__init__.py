from .analysis import SourceAnalysis, analyze_source
from .migration import MigrationReport, Migrator
from .sync import SyncReport, Syncer

__all__ = [
    "MigrationReport",
    "Migrator",
    "SourceAnalysis",
    "SyncReport",
    "Syncer",
    "analyze_source",
]
