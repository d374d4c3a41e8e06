"""Incremental synchronisation between a source repository and Git.

Each run loads the watermark file, then dispatches on the configured
direction:

* ``source-to-git`` re-reads the source history and applies commits
  dated strictly after ``last_source_sync``.
* ``git-to-source`` applies Git commits strictly after
  ``last_git_commit`` to a source checkout.
* ``bidirectional`` runs ``source-to-git``, snapshots the Git tip into
  ``last_git_commit`` so freshly imported commits are not exported back,
  then runs ``git-to-source``.

The watermark is persisted after every applied commit.  A failed save is
reported as a warning and does not stop the run.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator

from pydantic import BaseModel, Field

from git_migrator.authors import AuthorMap
from git_migrator.config import SyncConfig, SyncDirection, validate_sync_config
from git_migrator.exceptions import (
    ApplyError,
    ConfigurationError,
    ReadError,
    StateError,
    ValidationError,
)
from git_migrator.progress import ProgressReporter
from git_migrator.storage.watermark import SyncState, WatermarkFile
from git_migrator.vcs import create_source_reader
from git_migrator.vcs.cvs import CvsWriter
from git_migrator.vcs.git import GitReader, GitWriter
from git_migrator.vcs.models import Commit
from git_migrator.vcs.protocols import (
    GitHistoryReader,
    SourceReader,
    SourceWriter,
    TargetWriter,
)

logger = logging.getLogger(__name__)

WORK_DIR_PREFIX = "git-migrator-cvs-"


class SyncReport(BaseModel):
    """Outcome of one sync run.

    Attributes:
        direction: Direction value the run was configured with.
        dry_run: Whether commits were only listed, not applied.
        source_to_git: Source revisions applied to Git, in order.
        git_to_source: Git revisions applied to the source, in order.
        pending: Dry-run only; candidate revisions per one-way direction.
        up_to_date: One-way directions that had nothing to do.
        warnings: Non-fatal problems (watermark saves, snapshot, cleanup).
        started_at: ISO 8601 UTC timestamp of run start.
        completed_at: ISO 8601 UTC timestamp of run end.
    """

    direction: str
    dry_run: bool = False
    source_to_git: list[str] = Field(default_factory=list)
    git_to_source: list[str] = Field(default_factory=list)
    pending: dict[str, list[str]] = Field(default_factory=dict)
    up_to_date: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    started_at: str = ""
    completed_at: str = ""

    model_config = {"frozen": True}


def _default_source_writer(config: SyncConfig) -> SourceWriter:
    if config.source_type.lower() != "cvs":
        raise ConfigurationError(
            f"writing to source type {config.source_type} is not supported"
        )
    return CvsWriter(config.source_path, config.source_module)


class Syncer:
    """Synchronise commits between a source repository and Git.

    Args:
        config: Sync settings.
        source_reader_factory: Builds the source reader from the config.
        git_reader_factory: Builds a Git history reader for a path.
        git_writer_factory: Builds the Git writer.
        source_writer_factory: Builds the source writer from the config.
        watermark: Watermark file; defaults to ``config.state_file``.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        source_reader_factory: Callable[[SyncConfig], SourceReader] | None = None,
        git_reader_factory: Callable[[str], GitHistoryReader] | None = None,
        git_writer_factory: Callable[[], TargetWriter] | None = None,
        source_writer_factory: Callable[[SyncConfig], SourceWriter] | None = None,
        watermark: WatermarkFile | None = None,
    ) -> None:
        validate_sync_config(config)
        self.config = config
        self.author_map = AuthorMap(config.author_map)
        self.watermark = watermark or WatermarkFile(config.state_file)

        self._source_reader_factory = source_reader_factory or (
            lambda cfg: create_source_reader(cfg.source_type, cfg.source_path)
        )
        self._git_reader_factory = git_reader_factory or GitReader
        self._git_writer_factory = git_writer_factory or GitWriter
        self._source_writer_factory = source_writer_factory or _default_source_writer
        self._reporter = ProgressReporter()

        self._state = SyncState()
        self._warnings: list[str] = []
        self._applied: dict[SyncDirection, list[str]] = {}
        self._pending: dict[str, list[str]] = {}
        self._up_to_date: list[str] = []

    @property
    def progress_reporter(self) -> ProgressReporter:
        return self._reporter

    @property
    def state(self) -> SyncState:
        """Watermarks as of the end of the last run."""
        return self._state

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> SyncReport:
        """Execute one sync cycle.

        Raises:
            StateError: The watermark file exists but cannot be parsed.
            ValidationError: A repository could not be opened.
            ReadError: Commits could not be listed.
            ApplyError: A commit could not be applied.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        self._warnings = []
        self._applied = {
            SyncDirection.SOURCE_TO_GIT: [],
            SyncDirection.GIT_TO_SOURCE: [],
        }
        self._pending = {}
        self._up_to_date = []

        try:
            self._state = self.watermark.load()
        except StateError as exc:
            raise StateError(f"failed to load sync state: {exc}") from exc

        direction = self.config.direction
        logger.info(
            "Starting %s sync: %s <-> %s%s",
            direction.value,
            self.config.source_path,
            self.config.git_path,
            " (dry run)" if self.config.dry_run else "",
        )

        if direction == SyncDirection.SOURCE_TO_GIT:
            self._sync_source_to_git()
        elif direction == SyncDirection.GIT_TO_SOURCE:
            self._sync_git_to_source()
        else:
            self._sync_source_to_git()
            self._snapshot_git_head()
            self._sync_git_to_source()

        return SyncReport(
            direction=direction.value,
            dry_run=self.config.dry_run,
            source_to_git=self._applied[SyncDirection.SOURCE_TO_GIT],
            git_to_source=self._applied[SyncDirection.GIT_TO_SOURCE],
            pending=self._pending,
            up_to_date=self._up_to_date,
            warnings=list(self._warnings),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

    # ------------------------------------------------------------------
    # source -> git
    # ------------------------------------------------------------------

    def _sync_source_to_git(self) -> None:
        direction = SyncDirection.SOURCE_TO_GIT
        self._reporter.set_operation("Syncing source -> Git")

        source = self._source_reader_factory(self.config)
        try:
            try:
                source.validate()
            except Exception as exc:
                raise ValidationError(
                    f"failed to open source repository: {exc}"
                ) from exc
            try:
                commits = list(source.get_commits())
            except Exception as exc:
                raise ReadError(f"failed to get source commits: {exc}") from exc
        finally:
            self._close("source reader", source)

        watermark = self._state.last_source_sync
        new_commits = [
            c for c in commits if watermark is None or c.date > watermark
        ]
        if not new_commits:
            self._mark_up_to_date(direction, "source -> Git: up to date")
            return

        self._reporter.set_total(len(new_commits))
        self._reporter.set_current(0)
        self._reporter.start()
        self._reporter.set_operation(
            f"source -> Git: {len(new_commits)} new commit(s)"
        )

        if self.config.dry_run:
            self._record_pending(direction, new_commits, "Git")
            return

        writer = self._git_writer_factory()
        try:
            try:
                writer.open(self.config.git_path)
            except Exception as exc:
                raise ValidationError(
                    f"failed to open git repository: {exc}"
                ) from exc

            for commit in new_commits:
                name, email = self.author_map.get(commit.author)
                commit = commit.with_author(name, email)
                self._reporter.set_operation(
                    f"Applying source commit {commit.short_revision} to Git"
                )
                try:
                    writer.apply_commit(commit)
                except Exception as exc:
                    raise ApplyError(
                        commit.revision,
                        f"failed to apply source commit {commit.revision} "
                        f"to Git: {exc}",
                    ) from exc
                self._applied[direction].append(commit.revision)
                self._reporter.increment()

                self._state.advance_source(commit.date)
                self._persist()
        finally:
            self._close("git writer", writer)

        self._reporter.set_operation(
            f"source -> Git: synced {len(new_commits)} commit(s)"
        )

    # ------------------------------------------------------------------
    # git -> source
    # ------------------------------------------------------------------

    def _sync_git_to_source(self) -> None:
        direction = SyncDirection.GIT_TO_SOURCE
        self._reporter.set_operation("Syncing Git -> source")

        reader = self._git_reader_factory(self.config.git_path)
        try:
            try:
                reader.validate()
            except Exception as exc:
                raise ValidationError(
                    f"failed to open git repository: {exc}"
                ) from exc
            try:
                new_commits = list(
                    reader.get_commits_since(self._state.last_git_commit)
                )
            except Exception as exc:
                raise ReadError(f"failed to get git commits: {exc}") from exc
        finally:
            self._close("git reader", reader)

        if not new_commits:
            self._mark_up_to_date(direction, "Git -> source: up to date")
            return

        self._reporter.set_total(len(new_commits))
        self._reporter.set_current(0)
        self._reporter.start()
        self._reporter.set_operation(
            f"Git -> source: {len(new_commits)} new commit(s)"
        )

        if self.config.dry_run:
            self._record_pending(direction, new_commits, "source")
            return

        with self._work_dir() as work_dir:
            writer = self._source_writer_factory(self.config)
            try:
                try:
                    writer.init(work_dir)
                except Exception as exc:
                    raise ValidationError(
                        f"failed to initialise source writer: {exc}"
                    ) from exc

                for commit in new_commits:
                    self._reporter.set_operation(
                        f"Applying git commit {commit.short_revision} to source"
                    )
                    try:
                        writer.apply_commit(commit)
                    except Exception as exc:
                        raise ApplyError(
                            commit.revision,
                            f"failed to apply git commit {commit.revision} "
                            f"to source: {exc}",
                        ) from exc
                    self._applied[direction].append(commit.revision)
                    self._reporter.increment()

                    self._state.last_git_commit = commit.revision
                    self._persist()
            finally:
                self._close("source writer", writer)

        self._reporter.set_operation(
            f"Git -> source: synced {len(new_commits)} commit(s)"
        )

    # ------------------------------------------------------------------
    # Cycle prevention
    # ------------------------------------------------------------------

    def _snapshot_git_head(self) -> None:
        """Record the current Git tip as already synced to the source."""
        reader = self._git_reader_factory(self.config.git_path)
        try:
            reader.validate()
            head = reader.head_revision()
        except Exception as exc:
            self._warn(
                "could not read Git HEAD after source -> Git sync; "
                f"cycle prevention may not work: {exc}"
            )
            return
        finally:
            self._close("git reader", reader)

        if not head:
            return
        self._state.last_git_commit = head
        logger.debug("Git watermark snapshot: %s", head)
        if not self.config.dry_run:
            self._persist()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _work_dir(self) -> Iterator[str]:
        """Yield the configured work directory, or a temporary one."""
        if self.config.source_work_dir:
            yield self.config.source_work_dir
            return

        try:
            tmp = tempfile.mkdtemp(prefix=WORK_DIR_PREFIX)
        except OSError as exc:
            raise ValidationError(
                f"failed to create source work directory: {exc}"
            ) from exc
        try:
            yield tmp
        finally:
            try:
                shutil.rmtree(tmp)
            except OSError as exc:
                self._warn(f"failed to clean up work directory {tmp}: {exc}")

    def _persist(self) -> None:
        try:
            self.watermark.save(self._state)
        except StateError as exc:
            self._warn(f"failed to save sync state: {exc}")

    def _mark_up_to_date(self, direction: SyncDirection, message: str) -> None:
        self._up_to_date.append(direction.value)
        self._reporter.set_operation(message)
        logger.info(message)

    def _record_pending(
        self, direction: SyncDirection, commits: list[Commit], destination: str
    ) -> None:
        for commit in commits:
            logger.info(
                "DRY RUN: would sync commit %s (%s) to %s",
                commit.short_revision,
                commit.message.splitlines()[0] if commit.message else "",
                destination,
            )
        self._pending[direction.value] = [c.revision for c in commits]

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self._warnings.append(message)

    @staticmethod
    def _close(name: str, resource: object) -> None:
        try:
            resource.close()
        except Exception as exc:
            logger.warning("Failed to close %s: %s", name, exc)
