"""Pre-migration inspection of a source repository."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from git_migrator.authors import AuthorExtractor
from git_migrator.exceptions import ConfigurationError, ReadError, ValidationError
from git_migrator.vcs import create_source_reader

logger = logging.getLogger(__name__)


class SourceAnalysis(BaseModel):
    """What a migration of *path* would carry over.

    Attributes:
        source_type: Source kind the repository was read as.
        path: Repository path.
        commit_count: Number of commits (changesets for CVS).
        branches: Branch names, sorted.
        tags: Tag name to source revision.
        authors: Unique author usernames, sorted.
    """

    source_type: str
    path: str
    commit_count: int = 0
    branches: list[str] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)
    authors: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


def analyze_source(source_type: str, path: str) -> SourceAnalysis:
    """Validate the repository at *path* and summarise its history.

    Raises:
        ConfigurationError: *source_type* is not supported.
        ValidationError: The repository is unusable.
        ReadError: Commits, branches or tags could not be listed.
    """
    reader = create_source_reader(source_type, path)
    try:
        try:
            reader.validate()
        except (ConfigurationError, ValidationError):
            raise
        except Exception as exc:
            raise ValidationError(
                f"repository validation failed: {exc}"
            ) from exc

        try:
            branches = sorted(reader.get_branches())
        except Exception as exc:
            raise ReadError(f"failed to get branches: {exc}") from exc
        try:
            tags = dict(reader.get_tags())
        except Exception as exc:
            raise ReadError(f"failed to get tags: {exc}") from exc

        extractor = AuthorExtractor()
        commit_count = 0
        try:
            for commit in reader.get_commits():
                commit_count += 1
                extractor.add(commit.author)
        except Exception as exc:
            raise ReadError(f"failed to get commits: {exc}") from exc
    finally:
        reader.close()

    logger.info(
        "Analyzed %s: %d commits, %d branches, %d tags",
        path,
        commit_count,
        len(branches),
        len(tags),
    )
    return SourceAnalysis(
        source_type=source_type.lower(),
        path=path,
        commit_count=commit_count,
        branches=branches,
        tags=tags,
        authors=extractor.authors(),
    )
