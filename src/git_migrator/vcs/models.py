"""Pydantic models for commits and file changes.

Defines the value types exchanged between the source readers, the
orchestrators and the target writers:

- ``FileAction``: Enum of per-file operations.
- ``FileChange``: One file touched by a commit.
- ``Commit``: A source commit with its ordered file changes.

All models are frozen (immutable).  The orchestrators rewrite authorship
through ``Commit.with_author()``, which returns a copy.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class FileAction(str, Enum):
    """Possible operations on a single file."""

    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"


class FileChange(BaseModel):
    """A single file touched by a commit.

    Attributes:
        path: Repository-relative path using ``/`` separators.
        action: What happened to the file.
        content: Full file content after the change; ``None`` for deletes.
    """

    path: str
    action: FileAction
    content: bytes | None = None

    model_config = {"frozen": True}


class Commit(BaseModel):
    """A commit read from a repository.

    Attributes:
        revision: Opaque, source-defined revision identifier.
        author: Author username (source) or display name (after mapping).
        email: Author email; empty until mapped for sources without one.
        date: Commit timestamp.
        message: Commit log message.
        branch: Branch name, ``None`` for trunk/mainline.
        files: Ordered file changes.
    """

    revision: str
    author: str
    email: str = ""
    date: datetime
    message: str = ""
    branch: str | None = None
    files: list[FileChange] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def short_revision(self) -> str:
        """First eight characters of the revision, for display."""
        return self.revision[:8]

    def with_author(self, name: str, email: str) -> Commit:
        """Return a copy of this commit attributed to *name* / *email*."""
        return self.model_copy(update={"author": name, "email": email})
