"""Operator CLI for document schema migrations.

    grc-migrate list
    grc-migrate run user-roles risk-current-controls [--dry-run] [--json]
    grc-migrate verify risk-information-assets [--sample 5]

Exit status is 0 when every requested migration completed (documents that
failed individually are reported, not fatal) and 1 when the store could not
be reached.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Callable, Sequence

from grc_records.adapters.store.base import AbstractDocumentStore
from grc_records.adapters.store.mongo import MongoDocumentStore
from grc_records.core.config import settings
from grc_records.core.errors import StoreUnavailableError
from grc_records.core.logging import configure_logging
from grc_records.migrations import MIGRATIONS, all_migrations, get_migration
from grc_records.services.schema_migrator import (
    MigrationReport,
    SchemaMigrator,
    VerificationReport,
)

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], AbstractDocumentStore]


def _connect() -> AbstractDocumentStore:
    return MongoDocumentStore.connect(settings.mongo)


def build_parser() -> argparse.ArgumentParser:
    """Build the ``grc-migrate`` parser with its list, run and verify commands."""
    parser = argparse.ArgumentParser(
        prog="grc-migrate",
        description="Bring GRC collections to their current document schema.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="Show the available migrations")

    run = commands.add_parser("run", help="Apply one or more migrations")
    run.add_argument("names", nargs="+", choices=sorted(MIGRATIONS), metavar="NAME")
    run.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and log every change without writing",
    )
    run.add_argument("--json", action="store_true", help="Print reports as JSON")

    verify = commands.add_parser("verify", help="Report document shapes without writing")
    verify.add_argument("names", nargs="+", choices=sorted(MIGRATIONS), metavar="NAME")
    verify.add_argument("--sample", type=int, default=3, help="Samples kept per bucket")
    verify.add_argument("--json", action="store_true", help="Print reports as JSON")

    return parser


def _print_run(report: MigrationReport, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report.as_dict(), default=str))
        return

    mode = " (dry run)" if report.dry_run else ""
    print(f"{report.migration} on {report.collection}{mode}")
    print(
        f"  scanned={report.scanned} updated={report.updated} "
        f"skipped={report.skipped} errored={report.errored}"
    )
    for error in report.errors:
        print(f"  error {error.document_id}: {error.message}")
    if report.flagged_for_review:
        ids = ", ".join(str(i) for i in report.flagged_for_review)
        print(f"  needs manual review: {ids}")
    if report.assigned_defaults:
        print(f"  defaults assigned: {len(report.assigned_defaults)} (see log)")


def _print_verify(report: VerificationReport, as_json: bool) -> None:
    if as_json:
        print(
            json.dumps(
                {
                    "migration": report.migration,
                    "collection": report.collection,
                    "total": report.total,
                    "counts": report.counts,
                    "samples": report.samples,
                    "clean": report.is_clean,
                },
                default=str,
            )
        )
        return

    status = "clean" if report.is_clean else "needs migration"
    print(f"{report.migration} on {report.collection}: {report.total} documents, {status}")
    for bucket, count in report.counts.items():
        print(f"  {bucket}: {count}")
        for sample in report.samples[bucket]:
            print(f"    {json.dumps(sample, default=str)}")


def _list() -> None:
    for migration in all_migrations():
        print(f"{migration.name:<32} {migration.collection:<14} {migration.description}")


def main(argv: Sequence[str] | None = None, *, store_factory: StoreFactory = _connect) -> int:
    """Run the CLI and return the process exit status.

    Args:
        argv: Arguments without the program name; ``sys.argv`` when omitted.
        store_factory: Opens the document store. Tests pass an in-memory one.

    Returns:
        0 when every migration ran to the end, 1 when the store was lost.
    """
    args = build_parser().parse_args(argv)

    log_settings = settings.log
    if log_settings.output.lower() == "stdout":
        log_settings = log_settings.model_copy(update={"output": "stderr"})
    configure_logging(log_settings)

    if args.command == "list":
        _list()
        return 0

    try:
        store = store_factory()
    except StoreUnavailableError as exc:
        return _abort(exc)

    migrator = SchemaMigrator(store)
    try:
        for name in args.names:
            migration = get_migration(name)
            if args.command == "run":
                _print_run(migrator.run(migration, dry_run=args.dry_run), args.json)
            else:
                _print_verify(migrator.verify(migration, sample_size=args.sample), args.json)
    except StoreUnavailableError as exc:
        return _abort(exc)
    finally:
        if isinstance(store, MongoDocumentStore):
            store.close()
    return 0


def _abort(exc: StoreUnavailableError) -> int:
    logger.error("migration.aborted", extra={"error_code": exc.code, "error_msg": exc.message})
    print(f"aborted: {exc.message}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
