"""CVS repository reader.

Walks the ``,v`` files of a CVS repository and turns trunk file revisions
into changesets.  File revisions are grouped when they share author and
log message and fall within ``COMMIT_THRESHOLD`` seconds of each other,
the same rule cvs2svn uses.  A changeset never holds two revisions of the
same file.
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator

from git_migrator.exceptions import VcsError
from git_migrator.vcs.cvs.rcs import Delta, RcsFile, RcsParseError, parse_rcs_file
from git_migrator.vcs.models import Commit, FileAction, FileChange

logger = logging.getLogger(__name__)

COMMIT_THRESHOLD = 5 * 60  # seconds

_OPTIONAL_CVSROOT_FILES = ("history", "val-tags")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_repository(path: Path | str) -> ValidationResult:
    """Check that *path* looks like a CVS repository.

    The path must be a directory containing ``CVSROOT``.  Missing
    ``CVSROOT/history`` or ``CVSROOT/val-tags`` only produce warnings.
    """
    result = ValidationResult()
    root = Path(path)
    if not root.exists():
        result.errors.append(f"path does not exist: {root}")
        return result
    if not root.is_dir():
        result.errors.append(f"path is not a directory: {root}")
        return result

    cvsroot = root / "CVSROOT"
    if not cvsroot.is_dir():
        result.errors.append(f"CVSROOT directory not found in {root}")
        return result

    for name in _OPTIONAL_CVSROOT_FILES:
        if not (cvsroot / name).exists():
            result.warnings.append(f"optional file CVSROOT/{name} not found")
    return result


# ---------------------------------------------------------------------------
# Changeset grouping
# ---------------------------------------------------------------------------


@dataclass
class _FileRevision:
    path: str
    delta: Delta
    action: FileAction
    content: bytes | None


@dataclass
class _Changeset:
    author: str
    message: str
    revisions: list[_FileRevision] = field(default_factory=list)

    @property
    def first_date(self) -> datetime:
        return self.revisions[0].delta.date

    @property
    def last_date(self) -> datetime:
        return self.revisions[-1].delta.date

    def has_path(self, path: str) -> bool:
        return any(rev.path == path for rev in self.revisions)

    def revision_id(self) -> str:
        digest = hashlib.sha1()
        digest.update(self.author.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(self.message.encode("utf-8"))
        for rev in sorted(self.revisions, key=lambda r: r.path):
            digest.update(f"\x00{rev.path}:{rev.delta.revision}".encode("utf-8"))
        return f"{int(self.first_date.timestamp())}-{digest.hexdigest()[:12]}"

    def to_commit(self) -> Commit:
        return Commit(
            revision=self.revision_id(),
            author=self.author,
            date=self.last_date,
            message=self.message,
            files=[
                FileChange(path=rev.path, action=rev.action, content=rev.content)
                for rev in self.revisions
            ],
        )


def group_changesets(revisions: list[_FileRevision]) -> list[_Changeset]:
    """Group file revisions into changesets, oldest first."""
    ordered = sorted(revisions, key=lambda r: (r.delta.date, r.path))
    changesets: list[_Changeset] = []
    open_sets: dict[tuple[str, str], _Changeset] = {}
    for rev in ordered:
        message = rev.delta.log.strip()
        key = (rev.delta.author, message)
        current = open_sets.get(key)
        if (
            current is None
            or (rev.delta.date - current.last_date).total_seconds() > COMMIT_THRESHOLD
            or current.has_path(rev.path)
        ):
            current = _Changeset(author=rev.delta.author, message=message)
            open_sets[key] = current
            changesets.append(current)
        current.revisions.append(rev)
    changesets.sort(key=lambda cs: cs.first_date)
    return changesets


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class CvsReader:
    """Read trunk history, branches and tags from a CVS repository.

    Args:
        path: Repository root (the directory that contains ``CVSROOT``).
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._files: dict[str, RcsFile] | None = None

    def validate(self) -> None:
        result = validate_repository(self.path)
        for warning in result.warnings:
            logger.warning("%s: %s", self.path, warning)
        if not result.valid:
            raise VcsError(f"validation failed: {result.errors[0]}")

    def get_commits(self) -> Iterator[Commit]:
        """Trunk changesets, oldest first."""
        revisions: list[_FileRevision] = []
        for path, rcs in self._load().items():
            revisions.extend(self._file_revisions(path, rcs))
        changesets = group_changesets(revisions)
        logger.debug(
            "Grouped %d file revisions into %d changesets",
            len(revisions),
            len(changesets),
        )
        return iter([cs.to_commit() for cs in changesets])

    def get_branches(self) -> list[str]:
        names: set[str] = set()
        for rcs in self._load().values():
            names.update(rcs.branches())
        return sorted(names)

    def get_tags(self) -> dict[str, str]:
        tags: dict[str, str] = {}
        for rcs in self._load().values():
            tags.update(rcs.tags())
        return tags

    def close(self) -> None:
        self._files = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, RcsFile]:
        if self._files is not None:
            return self._files

        files: dict[str, RcsFile] = {}
        for dirpath, dirnames, filenames in os.walk(self.path):
            if Path(dirpath) == self.path and "CVSROOT" in dirnames:
                dirnames.remove("CVSROOT")
            dirnames.sort()
            for filename in sorted(filenames):
                if not filename.endswith(",v"):
                    continue
                full = Path(dirpath) / filename
                rel = self._repo_path(full)
                try:
                    rcs = parse_rcs_file(full)
                except (RcsParseError, OSError) as exc:
                    logger.warning("Skipping unreadable RCS file %s: %s", full, exc)
                    continue
                if rel in files:
                    logger.debug("Ignoring duplicate of %s in %s", rel, full)
                    continue
                files[rel] = rcs

        logger.info("Loaded %d RCS files from %s", len(files), self.path)
        self._files = files
        return files

    def _repo_path(self, full: Path) -> str:
        parts = list(full.relative_to(self.path).parts)
        parts[-1] = parts[-1][: -len(",v")]
        if len(parts) > 1 and parts[-2] == "Attic":
            del parts[-2]
        return "/".join(parts)

    @staticmethod
    def _file_revisions(path: str, rcs: RcsFile) -> list[_FileRevision]:
        try:
            texts = rcs.trunk_texts()
        except RcsParseError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return []

        result: list[_FileRevision] = []
        alive = False
        for delta in rcs.trunk_revisions():
            if delta.is_dead:
                if alive:
                    result.append(_FileRevision(path, delta, FileAction.DELETE, None))
                alive = False
                continue
            action = FileAction.MODIFY if alive else FileAction.ADD
            result.append(_FileRevision(path, delta, action, texts[delta.revision]))
            alive = True
        return result
