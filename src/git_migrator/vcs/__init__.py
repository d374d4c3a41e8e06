"""Repository collaborators and the source-reader registry."""

from __future__ import annotations

from typing import Callable

from git_migrator.exceptions import ConfigurationError

from .cvs import CvsReader, CvsWriter
from .git import GitReader, GitWriter
from .models import Commit, FileAction, FileChange
from .protocols import GitHistoryReader, SourceReader, SourceWriter, TargetWriter

_SOURCE_READERS: dict[str, Callable[[str], SourceReader]] = {
    "cvs": CvsReader,
    "git": GitReader,
}


def create_source_reader(source_type: str, path: str) -> SourceReader:
    """Build the reader registered for *source_type*.

    Raises:
        ConfigurationError: If no reader is registered for the type.
    """
    factory = _SOURCE_READERS.get(source_type.lower())
    if factory is None:
        supported = ", ".join(sorted(_SOURCE_READERS))
        raise ConfigurationError(
            f"unsupported source type: {source_type} (supported: {supported})"
        )
    return factory(path)


__all__ = [
    "Commit",
    "CvsReader",
    "CvsWriter",
    "FileAction",
    "FileChange",
    "GitHistoryReader",
    "GitReader",
    "GitWriter",
    "SourceReader",
    "SourceWriter",
    "TargetWriter",
    "create_source_reader",
]
