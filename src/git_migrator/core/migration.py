"""One-way migration of a source repository's history into Git.

The ``Migrator`` runs these steps in order:

1. Validates the source repository.
2. Opens or creates the target Git repository (skipped under dry-run).
3. Opens the checkpoint store and, when resuming, loads the prior state.
4. Reads the full commit list into memory.
5. Applies commits from the resume position, checkpointing every
   ``chunk_size`` commits.
6. Creates branches and tags (best-effort).
7. Records the migration as completed.

Fatal failures raise a ``MigratorError`` subclass naming the phase.
Best-effort failures are logged and returned as ``warnings`` on the
``MigrationReport``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import BaseModel, Field

from git_migrator.authors import AuthorMap
from git_migrator.config import MigrationConfig, validate_migration_config
from git_migrator.exceptions import (
    ApplyError,
    CheckpointNotFound,
    ConfigurationError,
    MigrationInterrupted,
    ReadError,
    StateError,
    ValidationError,
)
from git_migrator.progress import ProgressReporter
from git_migrator.storage.checkpoint import (
    CheckpointStore,
    MigrationState,
    MigrationStatus,
    migration_id,
)
from git_migrator.vcs import create_source_reader
from git_migrator.vcs.git import GitWriter
from git_migrator.vcs.models import Commit
from git_migrator.vcs.protocols import SourceReader, TargetWriter

logger = logging.getLogger(__name__)

TargetFactory = Callable[[], TargetWriter]
StoreFactory = Callable[[Path], CheckpointStore]


class MigrationReport(BaseModel):
    """Outcome of a completed (or dry-run) migration.

    Attributes:
        migration_id: Checkpoint key of this source/target pair.
        dry_run: Whether the run only simulated the migration.
        total: Number of commits read from the source.
        processed: Commits processed, counting those done by earlier runs.
        start_index: Index of the first commit handled by this run.
        applied: Source revisions handled by this run, in order.
        branches_created: Target branch names created.
        tags_created: Target tag names created.
        warnings: Non-fatal problems (failed branch/tag creation, ...).
        started_at: ISO 8601 UTC timestamp of run start.
        completed_at: ISO 8601 UTC timestamp of run end.
    """

    migration_id: str
    dry_run: bool = False
    total: int = 0
    processed: int = 0
    start_index: int = 0
    applied: list[str] = Field(default_factory=list)
    branches_created: list[str] = Field(default_factory=list)
    tags_created: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    started_at: str = ""
    completed_at: str = ""

    model_config = {"frozen": True}


class Migrator:
    """Migrate a source repository into Git.

    Args:
        config: Migration settings.
        source: Source reader; built from ``config.source_type`` if omitted.
        target_factory: Creates the target writer.  Never called under
            dry-run.
        store_factory: Opens the checkpoint store at a given path.
    """

    def __init__(
        self,
        config: MigrationConfig,
        *,
        source: SourceReader | None = None,
        target_factory: TargetFactory | None = None,
        store_factory: StoreFactory | None = None,
    ) -> None:
        validate_migration_config(config)
        self.config = config
        self.migration_id = migration_id(config.source_path, config.target_path)
        self.author_map = AuthorMap(config.author_map)

        self._source = source
        self._target_factory = target_factory or GitWriter
        self._store_factory = store_factory or CheckpointStore
        self._reporter = ProgressReporter()

        self._target: TargetWriter | None = None
        self._store: CheckpointStore | None = None
        self._warnings: list[str] = []

    @property
    def progress_reporter(self) -> ProgressReporter:
        return self._reporter

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> MigrationReport:
        """Execute the migration.

        Raises:
            ValidationError: The source or target repository is unusable.
            ReadError: Commits, branches or tags could not be listed.
            ApplyError: A commit could not be written to the target.
            StateError: The checkpoint store failed.
            MigrationInterrupted: ``interrupt_at`` was reached.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        self._warnings = []
        dry_run = self.config.dry_run
        logger.info(
            "Starting migration %s: %s -> %s%s",
            self.migration_id,
            self.config.source_path,
            self.config.target_path,
            " (dry run)" if dry_run else "",
        )

        source = self._open_source()
        try:
            if not dry_run:
                self._open_target()
            prior = self._open_state()
            commits = self._read_commits(source)

            self._reporter.set_total(len(commits))
            self._reporter.start()
            self._reporter.set_operation("Starting migration")

            start_index = self._start_index(commits, prior)
            if prior is not None and start_index > 0:
                self._reporter.set_current(start_index)

            applied = self._process(commits, start_index)

            branches: list[str] = []
            tags: list[str] = []
            if not dry_run:
                branches = self._create_branches(source)
                tags = self._create_tags(source)
                self._mark_complete(commits)

            self._reporter.set_operation("Migration complete")
        finally:
            self._close(source)

        report = MigrationReport(
            migration_id=self.migration_id,
            dry_run=dry_run,
            total=len(commits),
            processed=start_index + len(applied),
            start_index=start_index,
            applied=applied,
            branches_created=branches,
            tags_created=tags,
            warnings=list(self._warnings),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(
            "Migration %s finished: %d/%d commits, %d warning(s)",
            self.migration_id,
            report.processed,
            report.total,
            len(report.warnings),
        )
        return report

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _open_source(self) -> SourceReader:
        try:
            source = self._source or create_source_reader(
                self.config.source_type, self.config.source_path
            )
            source.validate()
        except (ConfigurationError, ValidationError):
            raise
        except Exception as exc:
            raise ValidationError(f"source validation failed: {exc}") from exc
        return source

    def _open_target(self) -> None:
        target = self._target_factory()
        path = self.config.target_path
        try:
            if Path(path).exists():
                target.open(path)
            else:
                target.init(path)
        except Exception as exc:
            raise ValidationError(
                f"failed to init target {path}: {exc}"
            ) from exc
        self._target = target

    def _open_state(self) -> MigrationState | None:
        """Open the checkpoint store and return prior state when resuming."""
        path = self.config.resolved_state_file()
        if self.config.dry_run and not (self.config.resume and path.exists()):
            return None

        try:
            self._store = self._store_factory(path)
        except StateError:
            raise
        except Exception as exc:
            raise StateError(f"failed to init state: {exc}") from exc

        if not self.config.resume:
            return None
        try:
            state = self._store.load(self.migration_id)
        except CheckpointNotFound:
            logger.info("No checkpoint for %s; starting fresh", self.migration_id)
            return None
        logger.info(
            "Resuming %s after %s (%d/%d processed)",
            self.migration_id,
            state.last_commit,
            state.processed,
            state.total,
        )
        return state

    def _read_commits(self, source: SourceReader) -> list[Commit]:
        try:
            return list(source.get_commits())
        except Exception as exc:
            raise ReadError(f"failed to get commits: {exc}") from exc

    def _start_index(
        self, commits: list[Commit], prior: MigrationState | None
    ) -> int:
        """Index after the checkpointed commit; 0 when it cannot be found."""
        if prior is None or not prior.last_commit:
            return 0
        for index, commit in enumerate(commits):
            if commit.revision == prior.last_commit:
                return index + 1
        self._warn(
            f"checkpointed revision {prior.last_commit} not found in source; "
            "replaying full history"
        )
        return 0

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _process(self, commits: list[Commit], start_index: int) -> list[str]:
        applied: list[str] = []
        total = len(commits)
        chunk_size = self.config.chunk_size
        interrupt_at = self.config.interrupt_at

        for index in range(start_index, total):
            commit = commits[index]
            self._reporter.set_operation(
                f"Processing commit {commit.short_revision}"
            )

            name, email = self.author_map.get(commit.author)
            commit = commit.with_author(name, email)

            if self._target is not None:
                try:
                    self._target.apply_commit(commit)
                except Exception as exc:
                    raise ApplyError(
                        commit.revision,
                        f"failed to apply commit {commit.revision}: {exc}",
                    ) from exc
            else:
                logger.debug(
                    "[dry-run] %s %s <%s> %s",
                    commit.short_revision,
                    name,
                    email,
                    commit.message.splitlines()[0] if commit.message else "",
                )

            applied.append(commit.revision)
            self._reporter.increment()
            processed = index + 1

            if chunk_size > 0 and processed % chunk_size == 0:
                self._save_state(commit.revision, processed, total)

            if interrupt_at > 0 and processed >= interrupt_at:
                try:
                    self._save_state(commit.revision, processed, total)
                except StateError as exc:
                    logger.warning(
                        "Failed to save state at interruption: %s", exc
                    )
                raise MigrationInterrupted(processed)

        return applied

    def _save_state(
        self,
        last_commit: str,
        processed: int,
        total: int,
        status: MigrationStatus = MigrationStatus.IN_PROGRESS,
    ) -> None:
        if self.config.dry_run or self._store is None:
            return
        state = MigrationState(
            migration_id=self.migration_id,
            last_commit=last_commit,
            processed=processed,
            total=total,
            source_path=self.config.source_path,
            target_path=self.config.target_path,
            status=status,
        )
        try:
            self._store.save(state)
        except StateError:
            raise
        except Exception as exc:
            raise StateError(f"failed to save state: {exc}") from exc
        logger.debug("Checkpoint %s at %d/%d", last_commit, processed, total)

    # ------------------------------------------------------------------
    # Branches, tags and completion
    # ------------------------------------------------------------------

    def _create_branches(self, source: SourceReader) -> list[str]:
        try:
            names = source.get_branches()
        except Exception as exc:
            raise ReadError(f"failed to create branches: {exc}") from exc

        created: list[str] = []
        for name in names:
            target_name = self.config.branch_map.get(name, name)
            try:
                self._target.create_branch(target_name, "HEAD")
            except Exception as exc:
                self._warn(f"failed to create branch {target_name}: {exc}")
                continue
            created.append(target_name)
        return created

    def _create_tags(self, source: SourceReader) -> list[str]:
        try:
            tags = source.get_tags()
        except Exception as exc:
            raise ReadError(f"failed to create tags: {exc}") from exc

        created: list[str] = []
        for name in tags:
            target_name = self.config.tag_map.get(name, name)
            try:
                self._target.create_tag(target_name, "HEAD", "")
            except Exception as exc:
                self._warn(f"failed to create tag {target_name}: {exc}")
                continue
            created.append(target_name)
        return created

    def _mark_complete(self, commits: list[Commit]) -> None:
        last = commits[-1].revision if commits else ""
        self._save_state(
            last, len(commits), len(commits), MigrationStatus.COMPLETED
        )
        try:
            self._store.complete(self.migration_id)
        except StateError as exc:
            raise StateError(f"failed to mark complete: {exc}") from exc

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self._warnings.append(message)

    def _close(self, source: SourceReader) -> None:
        for name, resource in (
            ("target repository", self._target),
            ("checkpoint store", self._store),
            ("source repository", source),
        ):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as exc:
                logger.warning("Failed to close %s: %s", name, exc)
        self._target = None
        self._store = None
