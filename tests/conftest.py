"""Shared pytest fixtures and in-memory collaborators for git-migrator tests."""

from __future__ import annotations

import shutil
from datetime import datetime, timedelta, timezone

import pytest
from dotenv import load_dotenv

from git_migrator.exceptions import CheckpointNotFound, StateError, VcsError
from git_migrator.storage.checkpoint import MigrationState, MigrationStatus
from git_migrator.vcs.models import Commit, FileAction, FileChange

load_dotenv()

BASE_DATE = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def pytest_collection_modifyitems(config, items):
    """Skip tests whose VCS executable is not installed."""
    missing = {
        "requires_git": shutil.which("git") is None,
        "requires_cvs": shutil.which("cvs") is None,
    }
    for item in items:
        for marker, is_missing in missing.items():
            if is_missing and marker in item.keywords:
                item.add_marker(
                    pytest.mark.skip(reason=f"{marker[9:]} executable not found")
                )


def make_commit(
    revision: str,
    author: str = "alice",
    minutes: int = 0,
    message: str | None = None,
    files: list[FileChange] | None = None,
) -> Commit:
    """Build a commit dated *minutes* after ``BASE_DATE``."""
    return Commit(
        revision=revision,
        author=author,
        date=BASE_DATE + timedelta(minutes=minutes),
        message=message if message is not None else f"commit {revision}",
        files=files
        if files is not None
        else [
            FileChange(
                path=f"{revision}.txt",
                action=FileAction.ADD,
                content=revision.encode(),
            )
        ],
    )


def make_commits(count: int, prefix: str = "r") -> list[Commit]:
    return [make_commit(f"{prefix}{i}", minutes=i) for i in range(1, count + 1)]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeSource:
    """In-memory ``SourceReader``."""

    def __init__(
        self,
        commits: list[Commit] | None = None,
        branches: list[str] | None = None,
        tags: dict[str, str] | None = None,
        validate_error: Exception | None = None,
        commits_error: Exception | None = None,
    ):
        self.commits = list(commits or [])
        self.branches = list(branches or [])
        self.tags = dict(tags or {})
        self.validate_error = validate_error
        self.commits_error = commits_error
        self.calls: list[str] = []
        self.closed = False

    def validate(self):
        self.calls.append("validate")
        if self.validate_error:
            raise self.validate_error

    def get_commits(self):
        self.calls.append("get_commits")
        if self.commits_error:
            raise self.commits_error
        return iter(self.commits)

    def get_branches(self):
        self.calls.append("get_branches")
        return list(self.branches)

    def get_tags(self):
        self.calls.append("get_tags")
        return dict(self.tags)

    def close(self):
        self.closed = True


class FakeTarget:
    """In-memory ``TargetWriter`` recording every call."""

    def __init__(
        self,
        fail_on: str | None = None,
        branch_failures: set[str] | None = None,
        tag_failures: set[str] | None = None,
    ):
        self.fail_on = fail_on
        self.branch_failures = branch_failures or set()
        self.tag_failures = tag_failures or set()
        self.initialized: str | None = None
        self.opened: str | None = None
        self.applied: list[Commit] = []
        self.branches: dict[str, str] = {}
        self.tags: dict[str, str] = {}
        self.closed = False

    def init(self, path):
        self.initialized = path

    def open(self, path):
        self.opened = path

    def apply_commit(self, commit):
        if commit.revision == self.fail_on:
            raise VcsError(f"cannot write {commit.revision}")
        self.applied.append(commit)
        return f"git-{len(self.applied)}"

    def create_branch(self, name, ref):
        if name in self.branch_failures:
            raise VcsError(f"branch {name} exists")
        self.branches[name] = ref

    def create_tag(self, name, ref, message=""):
        if name in self.tag_failures:
            raise VcsError(f"tag {name} exists")
        self.tags[name] = ref

    def close(self):
        self.closed = True


class FakeStore:
    """Dict-backed checkpoint store; survives ``close()`` for resume tests."""

    def __init__(self, fail_save: bool = False):
        self.rows: dict[str, MigrationState] = {}
        self.saves: list[MigrationState] = []
        self.completed: list[str] = []
        self.fail_save = fail_save
        self.closed = False

    def save(self, state):
        if self.fail_save:
            raise StateError("disk full")
        self.rows[state.migration_id] = state
        self.saves.append(state)

    def load(self, migration_id):
        try:
            return self.rows[migration_id]
        except KeyError:
            raise CheckpointNotFound(migration_id) from None

    def complete(self, migration_id):
        if migration_id not in self.rows:
            raise CheckpointNotFound(migration_id)
        self.rows[migration_id] = self.rows[migration_id].model_copy(
            update={"status": MigrationStatus.COMPLETED}
        )
        self.completed.append(migration_id)

    def close(self):
        self.closed = True


class FakeGitRepo:
    """In-memory Git repository acting as both history reader and writer.

    Applied commits become new history entries, so the tip moves the way
    a real repository's ``HEAD`` would.
    """

    def __init__(self, commits: list[Commit] | None = None):
        self.commits = list(commits or [])
        self.applied: list[Commit] = []
        self.opened: str | None = None
        self.validate_error: Exception | None = None

    # Reader side
    def validate(self):
        if self.validate_error:
            raise self.validate_error

    def get_commits_since(self, revision):
        revisions = [c.revision for c in self.commits]
        if revision in revisions:
            return iter(self.commits[revisions.index(revision) + 1 :])
        return iter(self.commits)

    def head_revision(self):
        return self.commits[-1].revision if self.commits else ""

    # Writer side
    def init(self, path):
        self.opened = path

    def open(self, path):
        self.opened = path

    def apply_commit(self, commit):
        self.applied.append(commit)
        imported = commit.model_copy(
            update={"revision": f"imported-{len(self.applied)}"}
        )
        self.commits.append(imported)
        return imported.revision

    def create_branch(self, name, ref):
        pass

    def create_tag(self, name, ref, message=""):
        pass

    def close(self):
        pass


class FakeSourceWriter:
    """In-memory ``SourceWriter``."""

    def __init__(self, fail_on: str | None = None):
        self.fail_on = fail_on
        self.work_dir: str | None = None
        self.applied: list[Commit] = []
        self.closed = False

    def init(self, work_dir):
        self.work_dir = work_dir

    def apply_commit(self, commit):
        if commit.revision == self.fail_on:
            raise VcsError("cvs commit failed")
        self.applied.append(commit)

    def close(self):
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def five_commits():
    """Commits r1..r5, one minute apart, all by alice."""
    return make_commits(5)


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_target():
    return FakeTarget()
