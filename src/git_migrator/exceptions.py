"""Error taxonomy for migration and sync runs.

Every failure an orchestrator can surface derives from ``MigratorError``
so callers can catch one type.  The subclasses name the phase that
failed:

- ``ConfigurationError`` -- missing or invalid settings, raised before I/O.
- ``ValidationError``    -- a repository is inaccessible or malformed.
- ``ReadError``          -- commits, branches or tags could not be listed.
- ``ApplyError``         -- writing one commit to the target failed.
- ``StateError``         -- persisted checkpoint/watermark is unusable.
- ``MigrationInterrupted`` -- the test-only ``interrupt_at`` threshold hit.
- ``VcsError``           -- raised by the git/cvs collaborators.
"""

from __future__ import annotations


class MigratorError(Exception):
    """Base class for all git-migrator errors."""


class ConfigurationError(MigratorError):
    """Required configuration is missing or invalid."""


class ValidationError(MigratorError):
    """A source or target repository failed validation."""


class ReadError(MigratorError):
    """Reading history (commits, branches, tags) from a repository failed."""


class ApplyError(MigratorError):
    """Applying a single commit to the target failed.

    Attributes:
        revision: The source revision that could not be applied.
    """

    def __init__(self, revision: str, message: str) -> None:
        super().__init__(message)
        self.revision = revision


class StateError(MigratorError):
    """Persisted state could not be read, parsed or written."""


class CheckpointNotFound(StateError):
    """No checkpoint exists for the requested migration ID."""

    def __init__(self, migration_id: str) -> None:
        super().__init__(f"no checkpoint for migration {migration_id}")
        self.migration_id = migration_id


class MigrationInterrupted(MigratorError):
    """The run stopped early at the configured ``interrupt_at`` commit.

    Attributes:
        commit_count: Number of commits processed when the run stopped.
    """

    def __init__(self, commit_count: int) -> None:
        super().__init__(f"interrupted at commit {commit_count}")
        self.commit_count = commit_count


class VcsError(MigratorError):
    """A version-control command failed.

    Attributes:
        command: The command line that was executed, if any.
        stderr: Captured error output of the command.
    """

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        stderr: str = "",
    ) -> None:
        detail = f"{message}: {stderr.strip()}" if stderr.strip() else message
        super().__init__(detail)
        self.command = command or []
        self.stderr = stderr
