"""Command-line front-end: ``git-migrator analyze|migrate|sync|authors``.

Reports go to stdout, log records and progress to stderr.

Exit codes:
    0  success
    1  failure
    2  migration interrupted (resume with ``--resume``)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

import yaml
from dotenv import load_dotenv

from . import __version__
from .authors import AuthorExtractor
from .config_loader import load_migration_config, load_sync_config
from .core import Migrator, Syncer, analyze_source
from .exceptions import MigrationInterrupted, MigratorError
from .logger import setup_logging
from .progress import ProgressStatus
from .reporter import (
    format_analysis_report,
    format_migration_report,
    format_sync_report,
    report_to_json,
)
from .vcs import create_source_reader

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 2


def _print_progress(status: ProgressStatus) -> None:
    if status.total:
        print(
            f"[{status.current}/{status.total} {status.percentage:5.1f}%] "
            f"{status.operation}",
            file=sys.stderr,
        )
    else:
        print(status.operation, file=sys.stderr)


def _emit(data: dict | str, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, indent=2))
    else:
        print(data)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_analyze(args: argparse.Namespace) -> int:
    analysis = analyze_source(args.source_type, args.source)
    if args.json:
        _emit(report_to_json(analysis), True)
    else:
        _emit(format_analysis_report(analysis), False)
    return EXIT_OK


def cmd_migrate(args: argparse.Namespace) -> int:
    config = load_migration_config(
        args.config, {"dry_run": args.dry_run, "resume": args.resume}
    )
    migrator = Migrator(config)
    if args.verbose:
        migrator.progress_reporter.subscribe(_print_progress)

    try:
        report = migrator.run()
    except MigrationInterrupted as exc:
        print(f"Migration {exc}; rerun with --resume", file=sys.stderr)
        return EXIT_INTERRUPTED

    if args.json:
        _emit(report_to_json(report), True)
    else:
        _emit(format_migration_report(report), False)
    return EXIT_OK


def cmd_sync(args: argparse.Namespace) -> int:
    overrides = {"dry_run": args.dry_run, "direction": args.direction}
    config = load_sync_config(args.config, overrides)
    syncer = Syncer(config)
    if args.verbose:
        syncer.progress_reporter.subscribe(_print_progress)

    report = syncer.run()
    if args.json:
        _emit(report_to_json(report), True)
    else:
        _emit(format_sync_report(report), False)
    return EXIT_OK


def cmd_authors_extract(args: argparse.Namespace) -> int:
    reader = create_source_reader(args.type, args.source)
    try:
        reader.validate()
        extractor = AuthorExtractor()
        for commit in reader.get_commits():
            extractor.add(commit.author)
    finally:
        reader.close()

    if args.format == "yaml":
        print(yaml.safe_dump(extractor.template(), sort_keys=True), end="")
    else:
        for author in extractor.authors():
            print(author)
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-migrator",
        description="Migrate CVS repositories to Git and keep them in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # See what a migration would carry over
  git-migrator analyze -s /srv/cvsroot

  # Preview a migration without touching the target
  git-migrator migrate -c migration.yaml --dry-run

  # Continue an interrupted migration
  git-migrator migrate -c migration.yaml --resume --verbose

  # One sync cycle in both directions
  git-migrator sync -c sync.yaml

  # Seed an author map
  git-migrator authors extract -s /srv/cvsroot --format yaml > authors.yaml

The config file may also be given via GIT_MIGRATOR_CONFIG (.env is read).
        """,
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write log records to this file")
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"git-migrator version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser(
        "analyze", help="Summarise a source repository before migrating it"
    )
    analyze.add_argument(
        "-s", "--source", required=True, help="Source repository path"
    )
    analyze.add_argument(
        "-t",
        "--source-type",
        default="cvs",
        help="Source type (default: cvs)",
    )
    analyze.add_argument("--json", action="store_true", help="JSON report")
    analyze.set_defaults(func=cmd_analyze)

    migrate = sub.add_parser("migrate", help="Migrate a repository to Git")
    migrate.add_argument("-c", "--config", help="Migration config file")
    migrate.add_argument(
        "-d", "--dry-run", action="store_true", help="Preview without writing"
    )
    migrate.add_argument(
        "-r", "--resume", action="store_true", help="Resume from the last checkpoint"
    )
    migrate.add_argument(
        "-v", "--verbose", action="store_true", help="Print progress to stderr"
    )
    migrate.add_argument("--json", action="store_true", help="JSON report")
    migrate.set_defaults(func=cmd_migrate)

    sync = sub.add_parser("sync", help="Synchronise Git and the source")
    sync.add_argument("-c", "--config", help="Sync config file")
    sync.add_argument(
        "-d", "--dry-run", action="store_true", help="List pending commits only"
    )
    sync.add_argument(
        "--direction",
        choices=(
            "git-to-source",
            "source-to-git",
            "bidirectional",
            "git-to-cvs",
            "cvs-to-git",
        ),
        help="Override the configured sync direction",
    )
    sync.add_argument(
        "-v", "--verbose", action="store_true", help="Print progress to stderr"
    )
    sync.add_argument("--json", action="store_true", help="JSON report")
    sync.set_defaults(func=cmd_sync)

    authors = sub.add_parser("authors", help="Author mapping helpers")
    authors_sub = authors.add_subparsers(dest="authors_command", required=True)
    extract = authors_sub.add_parser(
        "extract", help="List unique authors of a repository"
    )
    extract.add_argument(
        "-s", "--source", required=True, help="Source repository path"
    )
    extract.add_argument(
        "--type", default="cvs", help="Source type (default: cvs)"
    )
    extract.add_argument(
        "-f",
        "--format",
        choices=("text", "yaml"),
        default="text",
        help="Output format (default: text)",
    )
    extract.set_defaults(func=cmd_authors_extract)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command and return its exit code."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(
        debug=args.debug, log_file=args.log_file, log_format=args.log_format
    )

    try:
        return args.func(args)
    except MigratorError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_FAILURE


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
