"""Tests for storage/checkpoint.py: CheckpointStore and migration_id."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from git_migrator.exceptions import CheckpointNotFound, StateError
from git_migrator.storage.checkpoint import (
    CheckpointStore,
    MigrationState,
    MigrationStatus,
    migration_id,
)


@pytest.fixture
def store(tmp_path: Path):
    with CheckpointStore(tmp_path / "state" / "migration.db") as s:
        yield s


def _state(mid: str = "abc", **overrides) -> MigrationState:
    values = {
        "migration_id": mid,
        "last_commit": "r3",
        "processed": 3,
        "total": 5,
        "source_path": "/src",
        "target_path": "/tgt",
    }
    values.update(overrides)
    return MigrationState(**values)


class TestMigrationId:
    def test_deterministic(self):
        assert migration_id("/a", "/b") == migration_id("/a", "/b")

    def test_sixteen_hex_chars(self):
        mid = migration_id("/a", "/b")
        assert len(mid) == 16
        int(mid, 16)

    def test_changes_with_either_path(self):
        base = migration_id("/a", "/b")
        assert migration_id("/a", "/c") != base
        assert migration_id("/x", "/b") != base


class TestMigrationState:
    def test_processed_cannot_exceed_total(self):
        with pytest.raises(PydanticValidationError):
            _state(processed=6, total=5)

    def test_unknown_total_allows_any_processed(self):
        assert _state(processed=6, total=0).processed == 6

    def test_negative_processed_rejected(self):
        with pytest.raises(PydanticValidationError):
            _state(processed=-1)


class TestCheckpointStore:
    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "state.db"
        CheckpointStore(path).close()
        assert path.exists()

    def test_save_load_round_trip(self, store):
        store.save(_state())
        loaded = store.load("abc")

        assert loaded.last_commit == "r3"
        assert loaded.processed == 3
        assert loaded.total == 5
        assert loaded.status == MigrationStatus.IN_PROGRESS
        assert loaded.last_updated is not None

    def test_save_replaces_existing_row(self, store):
        store.save(_state())
        store.save(_state(last_commit="r4", processed=4))
        assert store.load("abc").last_commit == "r4"
        assert len(store.history()) == 1

    def test_load_missing_raises_not_found(self, store):
        with pytest.raises(CheckpointNotFound) as excinfo:
            store.load("missing")
        assert excinfo.value.migration_id == "missing"
        assert isinstance(excinfo.value, StateError)

    def test_complete_marks_status(self, store):
        store.save(_state())
        store.complete("abc")
        assert store.load("abc").status == MigrationStatus.COMPLETED

    def test_complete_missing_raises(self, store):
        with pytest.raises(CheckpointNotFound):
            store.complete("missing")

    def test_delete(self, store):
        store.save(_state())
        store.delete("abc")
        store.delete("abc")
        with pytest.raises(CheckpointNotFound):
            store.load("abc")

    def test_history_lists_all(self, store):
        store.save(_state("one"))
        store.save(_state("two"))
        assert {s.migration_id for s in store.history()} == {"one", "two"}

    def test_persists_across_connections(self, tmp_path):
        path = tmp_path / "state.db"
        with CheckpointStore(path) as first:
            first.save(_state())
        with CheckpointStore(path) as second:
            assert second.load("abc").processed == 3

    def test_unopenable_path_raises_state_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(StateError):
            CheckpointStore(blocker / "state.db")
