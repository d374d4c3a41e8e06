"""Tests for vcs/git.py against a real git executable.

Skipped when ``git`` is not installed.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import BASE_DATE, make_commit
from git_migrator.exceptions import VcsError
from git_migrator.vcs.git import GitReader, GitWriter, run_git
from git_migrator.vcs.models import FileAction, FileChange

pytestmark = pytest.mark.requires_git


@pytest.fixture
def writer(tmp_path: Path):
    w = GitWriter()
    w.init(str(tmp_path / "repo"))
    yield w
    w.close()


def _mapped(revision, minutes=0, files=None, message=None):
    return make_commit(
        revision, minutes=minutes, files=files, message=message
    ).with_author("Alice Smith", "alice@example.com")


class TestGitWriter:
    def test_init_creates_repository(self, writer, tmp_path):
        assert (tmp_path / "repo" / ".git").is_dir()
        assert writer.head_revision() == ""

    def test_apply_commit_preserves_identity_and_date(self, writer):
        revision = writer.apply_commit(_mapped("r1"))

        out = run_git(
            writer.path, ["log", "-1", "--format=%an|%ae|%cn|%at", revision]
        ).stdout.decode().strip()
        assert out == f"Alice Smith|alice@example.com|Alice Smith|{int(BASE_DATE.timestamp())}"
        assert (writer.path / "r1.txt").read_bytes() == b"r1"
        assert writer.head_revision() == revision

    def test_delete_removes_file(self, writer):
        writer.apply_commit(_mapped("r1"))
        writer.apply_commit(
            _mapped(
                "r2",
                minutes=1,
                files=[FileChange(path="r1.txt", action=FileAction.DELETE)],
            )
        )
        assert not (writer.path / "r1.txt").exists()
        tracked = run_git(writer.path, ["ls-files"]).stdout.decode().split()
        assert "r1.txt" not in tracked

    def test_nested_paths_and_empty_commits(self, writer):
        nested = FileChange(
            path="src/pkg/mod.c", action=FileAction.ADD, content=b"int x;\n"
        )
        first = writer.apply_commit(_mapped("r1", files=[nested]))
        second = writer.apply_commit(_mapped("r2", minutes=1, files=[], message=""))
        assert first != second
        assert (writer.path / "src" / "pkg" / "mod.c").exists()

    def test_branches_and_tags(self, writer):
        writer.apply_commit(_mapped("r1"))
        writer.create_branch("release-1", "HEAD")
        writer.create_tag("v1.0", "HEAD")
        writer.create_tag("v1.1", "HEAD", "annotated")

        reader = GitReader(str(writer.path))
        assert "release-1" in reader.get_branches()
        assert set(reader.get_tags()) == {"v1.0", "v1.1"}

    def test_duplicate_branch_raises(self, writer):
        writer.apply_commit(_mapped("r1"))
        writer.create_branch("b", "HEAD")
        with pytest.raises(VcsError) as excinfo:
            writer.create_branch("b", "HEAD")
        assert excinfo.value.stderr

    def test_path_escape_rejected(self, writer):
        bad = FileChange(path="../outside.txt", action=FileAction.ADD, content=b"x")
        with pytest.raises(VcsError, match="escapes"):
            writer.apply_commit(_mapped("r1", files=[bad]))

    def test_open_non_repository(self, tmp_path):
        with pytest.raises(VcsError, match="not a git repository"):
            GitWriter().open(str(tmp_path))

    def test_requires_init(self):
        with pytest.raises(VcsError, match="not initialized"):
            GitWriter().apply_commit(_mapped("r1"))


class TestGitReader:
    def test_history_oldest_first_with_files(self, writer):
        writer.apply_commit(_mapped("r1"))
        writer.apply_commit(_mapped("r2", minutes=1))

        commits = list(GitReader(str(writer.path)).get_commits())

        assert [c.message for c in commits] == ["commit r1", "commit r2"]
        assert commits[0].author == "Alice Smith"
        assert commits[0].email == "alice@example.com"
        assert commits[0].date == BASE_DATE
        assert commits[1].files == [
            FileChange(path="r2.txt", action=FileAction.ADD, content=b"r2")
        ]

    def test_commits_since_is_exclusive(self, writer):
        first = writer.apply_commit(_mapped("r1"))
        writer.apply_commit(_mapped("r2", minutes=1))
        writer.apply_commit(_mapped("r3", minutes=2))

        reader = GitReader(str(writer.path))
        since = [c.message for c in reader.get_commits_since(first)]
        assert since == ["commit r2", "commit r3"]
        assert list(reader.get_commits_since(reader.head_revision())) == []

    def test_unknown_revision_returns_all(self, writer):
        writer.apply_commit(_mapped("r1"))
        reader = GitReader(str(writer.path))
        assert len(list(reader.get_commits_since("0" * 40))) == 1
        assert len(list(reader.get_commits_since(""))) == 1

    def test_modify_and_delete_actions(self, writer):
        writer.apply_commit(_mapped("r1"))
        writer.apply_commit(
            _mapped(
                "r2",
                minutes=1,
                files=[
                    FileChange(path="r1.txt", action=FileAction.MODIFY, content=b"new")
                ],
            )
        )
        writer.apply_commit(
            _mapped(
                "r3",
                minutes=2,
                files=[FileChange(path="r1.txt", action=FileAction.DELETE)],
            )
        )

        commits = list(GitReader(str(writer.path)).get_commits())
        assert commits[1].files[0].action == FileAction.MODIFY
        assert commits[1].files[0].content == b"new"
        assert commits[2].files[0].action == FileAction.DELETE
        assert commits[2].files[0].content is None

    def test_empty_repository(self, writer):
        reader = GitReader(str(writer.path))
        assert reader.head_revision() == ""
        assert list(reader.get_commits()) == []

    def test_validate_missing_repository(self, tmp_path):
        with pytest.raises(VcsError):
            GitReader(str(tmp_path / "absent")).validate()
