"""Tests for config.py: MigrationConfig, SyncConfig and their validators."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from git_migrator.config import (
    DEFAULT_CHUNK_SIZE,
    STATE_DB_NAME,
    MigrationConfig,
    SyncConfig,
    SyncDirection,
    validate_migration_config,
    validate_sync_config,
)
from git_migrator.exceptions import ConfigurationError


class TestMigrationConfig:
    def test_defaults(self):
        config = MigrationConfig(source_path="/src", target_path="/tgt")
        assert config.source_type == "cvs"
        assert config.chunk_size == DEFAULT_CHUNK_SIZE
        assert config.dry_run is False
        assert config.resume is False
        assert config.interrupt_at == 0

    def test_negative_chunk_size_rejected(self):
        with pytest.raises(PydanticValidationError):
            MigrationConfig(chunk_size=-1)

    def test_zero_chunk_size_kept(self):
        assert MigrationConfig(chunk_size=0).chunk_size == 0

    def test_state_file_defaults_inside_target(self):
        config = MigrationConfig(source_path="/src", target_path="/tgt")
        assert config.resolved_state_file() == Path("/tgt") / STATE_DB_NAME

    def test_explicit_state_file(self):
        config = MigrationConfig(target_path="/tgt", state_file="/var/state.db")
        assert config.resolved_state_file() == Path("/var/state.db")

    @pytest.mark.parametrize(
        "missing, message",
        [
            ({"source_type": ""}, "source type"),
            ({"source_path": ""}, "source path"),
            ({"target_path": "  "}, "target path"),
        ],
    )
    def test_required_fields(self, missing, message):
        values = {"source_type": "cvs", "source_path": "/src", "target_path": "/tgt"}
        values.update(missing)
        with pytest.raises(ConfigurationError, match=message):
            validate_migration_config(MigrationConfig(**values))


class TestSyncConfig:
    def test_default_direction(self):
        assert SyncConfig().direction == SyncDirection.BIDIRECTIONAL

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("git-to-cvs", SyncDirection.GIT_TO_SOURCE),
            ("cvs-to-git", SyncDirection.SOURCE_TO_GIT),
            ("source-to-git", SyncDirection.SOURCE_TO_GIT),
        ],
    )
    def test_direction_aliases(self, value, expected):
        assert SyncConfig(direction=value).direction == expected

    def test_unknown_direction_rejected(self):
        with pytest.raises(PydanticValidationError):
            SyncConfig(direction="sideways")

    def test_git_path_required(self):
        with pytest.raises(ConfigurationError, match="git path"):
            validate_sync_config(SyncConfig(source_path="/cvs", source_module="m"))

    def test_module_optional_for_source_to_git(self):
        validate_sync_config(
            SyncConfig(git_path="/git", source_path="/cvs", direction="source-to-git")
        )

    def test_module_required_for_bidirectional(self):
        with pytest.raises(ConfigurationError, match="module"):
            validate_sync_config(SyncConfig(git_path="/git", source_path="/cvs"))
