"""Git repository reader and writer.

Both classes drive the ``git`` executable through ``subprocess.run``.

- ``GitWriter`` applies ``Commit`` objects to a working tree, preserving
  author, email and date, and creates branches and tags.
- ``GitReader`` lists the first-parent history of ``HEAD`` (oldest first)
  with per-commit file changes, and also serves as a migration source.
"""

from __future__ import annotations

import logging
import os
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from git_migrator.exceptions import VcsError
from git_migrator.vcs.models import Commit, FileAction, FileChange

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 300

# Field/record separators for ``git log --format``
_FIELD_SEP = "\x00"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x00%an%x00%ae%x00%aI%x00%B%x1e"

_STATUS_ACTIONS = {
    "A": FileAction.ADD,
    "M": FileAction.MODIFY,
    "T": FileAction.MODIFY,
    "D": FileAction.DELETE,
}


def run_git(
    cwd: Path | str,
    args: list[str],
    env: dict[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run ``git <args>`` in *cwd* and return the completed process.

    Output is captured as bytes.

    Raises:
        VcsError: If git is missing, times out, or (with *check*) exits
            non-zero.
    """
    command = ["git", *args]
    logger.debug("Running %s in %s", " ".join(command), cwd)
    full_env = None
    if env:
        full_env = {**os.environ, **env}
    try:
        result = subprocess.run(
            command,
            cwd=str(cwd),
            capture_output=True,
            env=full_env,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as exc:
        raise VcsError("git executable not found", command) from exc
    except subprocess.TimeoutExpired as exc:
        raise VcsError("git command timed out", command) from exc

    if check and result.returncode != 0:
        raise VcsError(
            f"git {args[0]} failed (exit {result.returncode})",
            command,
            result.stderr.decode("utf-8", errors="replace"),
        )
    return result


def _git_date(date: datetime) -> str:
    """Format *date* in git's internal ``<unix> <+hhmm>`` form."""
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return f"{int(date.timestamp())} {date.strftime('%z')}"


def _is_git_repo(path: Path) -> bool:
    if not path.is_dir():
        return False
    result = run_git(path, ["rev-parse", "--git-dir"], check=False)
    return result.returncode == 0


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class GitWriter:
    """Apply commits to a Git working tree."""

    def __init__(self) -> None:
        self.path: Path | None = None

    def init(self, path: str) -> None:
        """Create a new repository at *path* (directories included)."""
        repo = Path(path)
        try:
            repo.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise VcsError(f"failed to create directory {repo}: {exc}") from exc
        run_git(repo, ["init", "-q"])
        self.path = repo

    def open(self, path: str) -> None:
        """Open an existing repository at *path*."""
        repo = Path(path)
        if not _is_git_repo(repo):
            raise VcsError(f"not a git repository: {repo}")
        self.path = repo

    def apply_commit(self, commit: Commit) -> str:
        """Write the file changes of *commit* and commit them.

        Empty commits are allowed so every source commit yields exactly
        one Git commit.

        Returns:
            The new commit hash.
        """
        repo = self._require_repo()

        for change in commit.files:
            target = self._worktree_path(change.path)
            if change.action == FileAction.DELETE:
                try:
                    target.unlink()
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    raise VcsError(
                        f"failed to remove {change.path}: {exc}"
                    ) from exc
                run_git(
                    repo,
                    ["rm", "-q", "--cached", "--ignore-unmatch", "--", change.path],
                )
            else:
                try:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_bytes(change.content or b"")
                except OSError as exc:
                    raise VcsError(
                        f"failed to write {change.path}: {exc}"
                    ) from exc
                run_git(repo, ["add", "--", change.path])

        date = _git_date(commit.date)
        env = {
            "GIT_AUTHOR_NAME": commit.author,
            "GIT_AUTHOR_EMAIL": commit.email,
            "GIT_AUTHOR_DATE": date,
            "GIT_COMMITTER_NAME": commit.author,
            "GIT_COMMITTER_EMAIL": commit.email,
            "GIT_COMMITTER_DATE": date,
        }
        run_git(
            repo,
            [
                "commit",
                "-q",
                "--allow-empty",
                "--allow-empty-message",
                "--no-verify",
                "-m",
                commit.message,
            ],
            env=env,
        )
        return self.head_revision()

    def head_revision(self) -> str:
        """Hash of ``HEAD``, ``""`` when the repository has no commits."""
        result = run_git(
            self._require_repo(),
            ["rev-parse", "--verify", "-q", "HEAD"],
            check=False,
        )
        return result.stdout.decode().strip() if result.returncode == 0 else ""

    def create_branch(self, name: str, ref: str) -> None:
        run_git(self._require_repo(), ["branch", name, ref])

    def create_tag(self, name: str, ref: str, message: str = "") -> None:
        """Create a lightweight tag, or an annotated one if *message* is set."""
        if not message:
            run_git(self._require_repo(), ["tag", name, ref])
            return
        run_git(
            self._require_repo(),
            ["tag", "-a", "-m", message, name, ref],
            env={
                "GIT_COMMITTER_NAME": "git-migrator",
                "GIT_COMMITTER_EMAIL": "git-migrator@localhost",
            },
        )

    def close(self) -> None:
        self.path = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_repo(self) -> Path:
        if self.path is None:
            raise VcsError("repository not initialized")
        return self.path

    def _worktree_path(self, rel_path: str) -> Path:
        repo = self._require_repo().resolve()
        target = (repo / rel_path).resolve()
        if repo != target and repo not in target.parents:
            raise VcsError(f"path escapes repository: {rel_path}")
        if ".git" in Path(rel_path).parts:
            raise VcsError(f"refusing to write inside .git: {rel_path}")
        return target


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class GitReader:
    """Read first-parent history from a Git repository.

    Args:
        path: Repository working tree.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self._validated = False

    def validate(self) -> None:
        if not _is_git_repo(self.path):
            raise VcsError(f"failed to open git repository at {self.path}")
        self._validated = True

    def head_revision(self) -> str:
        self._ensure_valid()
        result = run_git(
            self.path, ["rev-parse", "--verify", "-q", "HEAD"], check=False
        )
        return result.stdout.decode().strip() if result.returncode == 0 else ""

    def get_commits(self) -> Iterator[Commit]:
        """All first-parent commits reachable from ``HEAD``, oldest first."""
        self._ensure_valid()
        if not self.head_revision():
            return iter(())
        result = run_git(
            self.path,
            ["log", "--first-parent", "--reverse", f"--format={_LOG_FORMAT}", "HEAD"],
        )
        output = result.stdout.decode("utf-8", errors="replace")
        commits = [
            self._parse_record(record)
            for record in output.split(_RECORD_SEP)
            if record.strip()
        ]
        return iter(commits)

    def get_commits_since(self, revision: str) -> Iterator[Commit]:
        """Commits strictly after *revision*.

        An empty *revision*, or one not in the history, yields everything.
        """
        commits = list(self.get_commits())
        if revision:
            for index, commit in enumerate(commits):
                if commit.revision == revision:
                    return iter(commits[index + 1 :])
            logger.warning(
                "Revision %s not found in %s; returning full history",
                revision,
                self.path,
            )
        return iter(commits)

    def get_branches(self) -> list[str]:
        self._ensure_valid()
        result = run_git(
            self.path,
            ["for-each-ref", "--format=%(refname:short)", "refs/heads"],
        )
        return [line for line in result.stdout.decode().splitlines() if line]

    def get_tags(self) -> dict[str, str]:
        self._ensure_valid()
        result = run_git(
            self.path,
            ["for-each-ref", "--format=%(refname:short) %(objectname)", "refs/tags"],
        )
        tags: dict[str, str] = {}
        for line in result.stdout.decode().splitlines():
            name, _, obj = line.partition(" ")
            if name:
                tags[name] = obj
        return tags

    def close(self) -> None:
        self._validated = False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_valid(self) -> None:
        if not self._validated:
            self.validate()

    def _parse_record(self, record: str) -> Commit:
        revision, author, email, date, message = record.lstrip("\n").split(
            _FIELD_SEP, 4
        )
        return Commit(
            revision=revision,
            author=author,
            email=email,
            date=datetime.fromisoformat(date),
            message=message.rstrip("\n"),
            files=self._file_changes(revision),
        )

    def _file_changes(self, revision: str) -> list[FileChange]:
        result = run_git(
            self.path,
            ["diff-tree", "--no-commit-id", "-r", "--root", "--name-status", "-z", revision],
        )
        fields = result.stdout.decode("utf-8", errors="replace").split("\x00")
        changes: list[FileChange] = []
        for status, path in zip(fields[0::2], fields[1::2]):
            action = _STATUS_ACTIONS.get(status[:1])
            if action is None:
                logger.debug("Skipping %s change to %s", status, path)
                continue
            content = None
            if action != FileAction.DELETE:
                content = run_git(self.path, ["show", f"{revision}:{path}"]).stdout
            changes.append(FileChange(path=path, action=action, content=content))
        return changes
