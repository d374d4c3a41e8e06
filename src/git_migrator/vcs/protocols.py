"""Collaborator contracts consumed by the orchestrators.

The migrator and syncer only talk to repositories through these
protocols, so tests can substitute in-memory fakes and new source kinds
can be added without touching the orchestration code.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from git_migrator.vcs.models import Commit


class SourceReader(Protocol):
    """Read-only access to a source repository's history."""

    def validate(self) -> None:
        """Raise if the repository is missing or malformed."""
        ...  # pragma: no cover

    def get_commits(self) -> Iterable[Commit]:
        """All commits, oldest first."""
        ...  # pragma: no cover

    def get_branches(self) -> list[str]:
        ...  # pragma: no cover

    def get_tags(self) -> dict[str, str]:
        """Tag name -> source revision."""
        ...  # pragma: no cover

    def close(self) -> None:
        ...  # pragma: no cover


class TargetWriter(Protocol):
    """Write access to the target Git repository."""

    def init(self, path: str) -> None:
        ...  # pragma: no cover

    def open(self, path: str) -> None:
        ...  # pragma: no cover

    def apply_commit(self, commit: Commit) -> str:
        """Write *commit* and return the new revision.

        Advances the writer's current tip (``HEAD``).
        """
        ...  # pragma: no cover

    def create_branch(self, name: str, ref: str) -> None:
        ...  # pragma: no cover

    def create_tag(self, name: str, ref: str, message: str = "") -> None:
        ...  # pragma: no cover

    def close(self) -> None:
        ...  # pragma: no cover


class GitHistoryReader(Protocol):
    """Incremental reader over a Git repository's mainline."""

    def validate(self) -> None:
        ...  # pragma: no cover

    def get_commits_since(self, revision: str) -> Iterable[Commit]:
        """Commits strictly after *revision*, oldest first.

        An empty or unknown *revision* yields the whole history.
        """
        ...  # pragma: no cover

    def head_revision(self) -> str:
        """Hash of the current tip, ``""`` for an empty repository."""
        ...  # pragma: no cover

    def close(self) -> None:
        ...  # pragma: no cover


class SourceWriter(Protocol):
    """Write access to the source repository through a working directory."""

    def init(self, work_dir: str) -> None:
        """Prepare *work_dir* (e.g. check the module out into it)."""
        ...  # pragma: no cover

    def apply_commit(self, commit: Commit) -> None:
        """Write, stage and commit the changes of *commit*."""
        ...  # pragma: no cover

    def close(self) -> None:
        ...  # pragma: no cover
