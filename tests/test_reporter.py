"""Tests for reporter.py: report formatting and JSON output."""

import json

from git_migrator.core import MigrationReport, SourceAnalysis, SyncReport
from git_migrator.reporter import (
    format_analysis_report,
    format_migration_report,
    format_sync_report,
    report_to_json,
)


def _migration(**kwargs):
    defaults = dict(
        migration_id="abc123",
        total=3,
        processed=3,
        applied=["r1", "r2", "r3"],
        started_at="2024-01-01T12:00:00+00:00",
        completed_at="2024-01-01T12:01:00+00:00",
    )
    defaults.update(kwargs)
    return MigrationReport(**defaults)


def _sync(**kwargs):
    defaults = dict(direction="bidirectional", started_at="2024-01-01T12:00:00+00:00")
    defaults.update(kwargs)
    return SyncReport(**defaults)


class TestFormatMigrationReport:
    """Tests for format_migration_report()."""

    def test_summary(self):
        text = format_migration_report(_migration())
        assert text.startswith("Migration abc123\n")
        assert "Applied 3 commits (3/3 processed)" in text
        assert "Completed: 2024-01-01T12:01:00+00:00" in text

    def test_dry_run_header(self):
        text = format_migration_report(_migration(dry_run=True))
        assert "Migration abc123 (DRY RUN)" in text
        assert "Would apply 3 commits" in text

    def test_resume_line(self):
        text = format_migration_report(
            _migration(start_index=2, applied=["r3"])
        )
        assert "Resumed at commit 3" in text
        assert "Applied 1 commits (3/3 processed)" in text

    def test_optional_sections(self):
        text = format_migration_report(
            _migration(
                branches_created=["release"],
                tags_created=["v1"],
                warnings=["failed to create tag bad: exists"],
            )
        )
        assert "Branches created:\n  release" in text
        assert "Tags created:\n  v1" in text
        assert "Warnings:\n  failed to create tag bad: exists" in text

    def test_empty_sections_omitted(self):
        text = format_migration_report(_migration())
        assert "Branches created" not in text
        assert "Warnings" not in text
        assert not text.endswith("\n")


class TestFormatSyncReport:
    """Tests for format_sync_report()."""

    def test_counts_and_revisions(self):
        text = format_sync_report(
            _sync(source_to_git=["1700000000-aaaaaaaaaaaa"], git_to_source=["f" * 40])
        )
        assert "Sync report (bidirectional)" in text
        assert "Synced 1 commits source -> Git, 1 commits Git -> source" in text
        assert "  17000000" in text
        assert "  ffffffff" in text

    def test_dry_run_pending(self):
        text = format_sync_report(
            _sync(dry_run=True, pending={"source-to-git": ["r1", "r2"]})
        )
        assert "(DRY RUN)" in text
        assert "Would sync (source-to-git):\n  r1\n  r2" in text

    def test_long_lists_truncated(self):
        revisions = [f"rev{i:05d}" for i in range(25)]
        text = format_sync_report(_sync(source_to_git=revisions))
        assert "  rev00019" in text
        assert "rev00020" not in text
        assert "... and 5 more" in text

    def test_up_to_date_and_warnings(self):
        text = format_sync_report(
            _sync(
                up_to_date=["source-to-git", "git-to-source"],
                warnings=["failed to save sync state: disk full"],
            )
        )
        assert "Up to date: source-to-git, git-to-source" in text
        assert "Warnings:\n  failed to save sync state: disk full" in text


class TestReportToJson:
    """Tests for report_to_json()."""

    def test_migration_counts(self):
        data = report_to_json(_migration(tags_created=["v1"], warnings=["w"]))
        assert data["counts"] == {
            "applied": 3,
            "branches": 0,
            "tags": 1,
            "warnings": 1,
        }
        assert data["migration_id"] == "abc123"
        json.dumps(data)

    def test_sync_counts(self):
        data = report_to_json(
            _sync(source_to_git=["a", "b"], pending={"git-to-source": ["c"]})
        )
        assert data["counts"] == {
            "source_to_git": 2,
            "git_to_source": 0,
            "warnings": 0,
        }
        assert data["pending"] == {"git-to-source": ["c"]}
        assert data["direction"] == "bidirectional"


class TestFormatAnalysisReport:
    """Tests for format_analysis_report()."""

    def test_counts_and_listings(self):
        text = format_analysis_report(
            SourceAnalysis(
                source_type="cvs",
                path="/srv/cvsroot",
                commit_count=12,
                branches=["RELENG_1"],
                tags={"REL_2": "1.5", "REL_1": "1.2"},
                authors=["alice"],
            )
        )
        assert "Commits:        12" in text
        assert "Tags:\n  REL_1 (revision 1.2)\n  REL_2 (revision 1.5)" in text
        assert "Authors:\n  alice" in text

    def test_empty_repository_omits_listings(self):
        text = format_analysis_report(SourceAnalysis(source_type="cvs", path="/r"))
        assert "Commits:        0" in text
        assert "Branches:\n" not in text
        assert "Authors:" not in text
