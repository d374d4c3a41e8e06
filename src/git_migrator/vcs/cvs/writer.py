"""Apply commits to a CVS repository through a checked-out working directory."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

from git_migrator.exceptions import VcsError
from git_migrator.vcs.models import Commit, FileAction

logger = logging.getLogger(__name__)

CVS_TIMEOUT_SECONDS = 300


class CvsWriter:
    """Write commits into a CVS module using the ``cvs`` executable.

    Args:
        cvsroot: Repository root passed to ``cvs -d``.
        module: Module to check out and commit into.
    """

    def __init__(self, cvsroot: str, module: str) -> None:
        self.cvsroot = cvsroot
        self.module = module
        self.work_dir: Path | None = None

    def init(self, work_dir: str) -> None:
        """Check *module* out into *work_dir*."""
        if shutil.which("cvs") is None:
            raise VcsError("cvs executable not found in PATH")
        path = Path(work_dir)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise VcsError(f"failed to create work directory {path}: {exc}") from exc
        self._run(path, ["checkout", "-d", ".", self.module])
        self.work_dir = path

    def apply_commit(self, commit: Commit) -> None:
        work_dir = self._require_work_dir()
        to_add: list[str] = []
        to_remove: list[str] = []

        for change in commit.files:
            target = work_dir / change.path
            if change.action == FileAction.DELETE:
                try:
                    target.unlink()
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    raise VcsError(f"failed to remove {change.path}: {exc}") from exc
                to_remove.append(change.path)
                continue

            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(change.content or b"")
            except OSError as exc:
                raise VcsError(f"failed to write {change.path}: {exc}") from exc
            if change.action == FileAction.ADD:
                to_add.extend(self._new_directories(work_dir, change.path))
                to_add.append(change.path)

        if to_add:
            self._run(work_dir, ["add", *dict.fromkeys(to_add)])
        if to_remove:
            self._run(work_dir, ["remove", *to_remove])
        self._run(
            work_dir,
            ["commit", "-m", commit.message or "(no message)"],
            env={"CVS_CLIENT_NAME": commit.author},
        )
        logger.debug("Committed %s to CVS module %s", commit.short_revision, self.module)

    def close(self) -> None:
        self.work_dir = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_work_dir(self) -> Path:
        if self.work_dir is None:
            raise VcsError("CVS working directory not initialised")
        return self.work_dir

    @staticmethod
    def _new_directories(work_dir: Path, rel_path: str) -> list[str]:
        """Parent directories of *rel_path* not yet under CVS control."""
        parents = Path(rel_path).parents
        missing = [
            str(parent)
            for parent in reversed(list(parents))
            if str(parent) != "." and not (work_dir / parent / "CVS").is_dir()
        ]
        return missing

    def _run(
        self,
        cwd: Path,
        args: list[str],
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess:
        command = ["cvs", "-d", self.cvsroot, *args]
        logger.debug("Running %s in %s", " ".join(command), cwd)
        try:
            result = subprocess.run(
                command,
                cwd=str(cwd),
                capture_output=True,
                env={**os.environ, **env} if env else None,
                timeout=CVS_TIMEOUT_SECONDS,
            )
        except FileNotFoundError as exc:
            raise VcsError("cvs executable not found", command) from exc
        except subprocess.TimeoutExpired as exc:
            raise VcsError("cvs command timed out", command) from exc
        if result.returncode != 0:
            raise VcsError(
                f"cvs {args[0]} failed (exit {result.returncode})",
                command,
                result.stderr.decode("utf-8", errors="replace"),
            )
        return result
