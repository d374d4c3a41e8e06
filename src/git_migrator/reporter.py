"""Run report formatting functions.

Provides human-readable and machine-readable output for source analysis,
migration and sync runs:

- ``format_analysis_report`` -- pre-migration repository summary.
- ``format_migration_report`` -- post-migration summary.
- ``format_sync_report`` -- post-sync summary, including dry-run previews.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .core.analysis import SourceAnalysis
    from .core.migration import MigrationReport
    from .core.sync import SyncReport

_MAX_LISTED = 20


def _short(revision: str) -> str:
    return revision[:8]


def _revision_lines(revisions: list[str]) -> list[str]:
    lines = [f"  {_short(rev)}" for rev in revisions[:_MAX_LISTED]]
    if len(revisions) > _MAX_LISTED:
        lines.append(f"  ... and {len(revisions) - _MAX_LISTED} more")
    return lines


# ------------------------------------------------------------------
# Human-readable reports
# ------------------------------------------------------------------


def format_analysis_report(analysis: SourceAnalysis) -> str:
    """Format a source analysis as human-readable text."""
    lines = [
        "Repository analysis",
        f"Type:           {analysis.source_type}",
        f"Path:           {analysis.path}",
        f"Commits:        {analysis.commit_count}",
        f"Branches:       {len(analysis.branches)}",
        f"Tags:           {len(analysis.tags)}",
        f"Unique authors: {len(analysis.authors)}",
        "",
    ]

    if analysis.branches:
        lines.append("Branches:")
        lines.extend(f"  {name}" for name in analysis.branches)
        lines.append("")

    if analysis.tags:
        lines.append("Tags:")
        for name in sorted(analysis.tags):
            lines.append(f"  {name} (revision {analysis.tags[name]})")
        lines.append("")

    if analysis.authors:
        lines.append("Authors:")
        lines.extend(f"  {author}" for author in analysis.authors)
        lines.append("")

    lines.append("Repository is valid and ready for migration.")
    return "\n".join(lines)


def format_migration_report(report: MigrationReport) -> str:
    """Format a migration report as human-readable text.

    Branch, tag and warning sections are only included when non-empty.
    """
    lines: list[str] = []

    header = f"Migration {report.migration_id}"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    verb = "Would apply" if report.dry_run else "Applied"
    lines.append(
        f"{verb} {len(report.applied)} commits "
        f"({report.processed}/{report.total} processed)"
    )
    if report.start_index:
        lines.append(f"Resumed at commit {report.start_index + 1}")
    lines.append("")

    if report.branches_created:
        lines.append("Branches created:")
        for name in report.branches_created:
            lines.append(f"  {name}")
        lines.append("")

    if report.tags_created:
        lines.append("Tags created:")
        for name in report.tags_created:
            lines.append(f"  {name}")
        lines.append("")

    if report.warnings:
        lines.append("Warnings:")
        for warning in report.warnings:
            lines.append(f"  {warning}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_sync_report(report: SyncReport) -> str:
    """Format a sync report as human-readable text.

    Dry-run reports list the pending revisions per direction instead of
    applied ones.
    """
    lines: list[str] = []

    header = f"Sync report ({report.direction})"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Synced {len(report.source_to_git)} commits source -> Git, "
        f"{len(report.git_to_source)} commits Git -> source"
    )
    lines.append("")

    if report.source_to_git:
        lines.append("Source -> Git:")
        lines.extend(_revision_lines(report.source_to_git))
        lines.append("")

    if report.git_to_source:
        lines.append("Git -> source:")
        lines.extend(_revision_lines(report.git_to_source))
        lines.append("")

    for direction, revisions in report.pending.items():
        lines.append(f"Would sync ({direction}):")
        lines.extend(_revision_lines(revisions))
        lines.append("")

    if report.up_to_date:
        lines.append(f"Up to date: {', '.join(report.up_to_date)}")
        lines.append("")

    if report.warnings:
        lines.append("Warnings:")
        for warning in report.warnings:
            lines.append(f"  {warning}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SourceAnalysis | MigrationReport | SyncReport) -> dict:
    """Convert a run report to a structured dict for JSON serialisation."""
    data = report.model_dump(mode="json")
    if "commit_count" in data:
        data["counts"] = {
            "commits": report.commit_count,
            "branches": len(report.branches),
            "tags": len(report.tags),
            "authors": len(report.authors),
        }
    elif "applied" in data:
        data["counts"] = {
            "applied": len(report.applied),
            "branches": len(report.branches_created),
            "tags": len(report.tags_created),
            "warnings": len(report.warnings),
        }
    else:
        data["counts"] = {
            "source_to_git": len(report.source_to_git),
            "git_to_source": len(report.git_to_source),
            "warnings": len(report.warnings),
        }
    return data
