"""Idempotent document schema migrations.

A ``DocumentMigration`` describes one logical field change on one collection:
- ``detect`` reads a stored document and names its schema version,
- each ``SchemaStep`` upgrades exactly one version to the next,
- ``selector`` is the MongoDB filter for documents that still need work.

``SchemaMigrator.run`` folds every matched document through the steps until it
reaches the canonical version, then writes only the owned fields that changed
(plus an ``updatedAt`` stamp) with a single targeted update. Documents are
processed one at a time; a failure on one is recorded and the batch moves on.
A lost store connection aborts the batch.

``SchemaMigrator.verify`` is the read-only companion: it buckets every document
of the collection by shape and never writes.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from grc_records.adapters.store.base import AbstractDocumentStore, Document, Selector
from grc_records.core.errors import PerDocumentMigrationError, StoreUnavailableError

logger = logging.getLogger(__name__)

MISSING = "missing"

Upgrade = Callable[[Document, Any], Document]


@dataclass(frozen=True)
class SchemaStep:
    """One upgrade between two schema versions of a document.

    Attributes:
        source: Version tag this step accepts.
        target: Version tag the upgraded document must have.
        upgrade: Receives a private copy of the document plus the migration
            context and returns the upgraded document.
        completes_data: The step assigns values that were not present in the
            old document. Assigned values are logged for audit.
        needs_review: Documents passing through this step are flagged for a
            human to fill in real values.
    """

    source: str
    target: str
    upgrade: Upgrade
    completes_data: bool = False
    needs_review: bool = False


@dataclass(frozen=True)
class DocumentMigration:
    """Declarative description of one collection migration."""

    name: str
    collection: str
    fields: tuple[str, ...]
    canonical: str
    detect: Callable[[Document], str]
    steps: tuple[SchemaStep, ...]
    selector: Selector | None = None
    description: str = ""
    label_fields: tuple[str, ...] = ()
    prepare: Callable[[AbstractDocumentStore], Any] | None = None

    def __post_init__(self) -> None:
        sources = [step.source for step in self.steps]
        if len(sources) != len(set(sources)):
            raise ValueError(f"{self.name}: more than one step per source version")
        if self.canonical in sources:
            raise ValueError(f"{self.name}: canonical version cannot be upgraded")

    def step_from(self, version: str) -> SchemaStep:
        for step in self.steps:
            if step.source == version:
                return step
        raise ValueError(f"No upgrade from schema version {version!r}")

    def label(self, document: Document) -> str:
        """Human-friendly identifier for logs (e.g. riskId, email)."""
        for name in self.label_fields:
            if document.get(name):
                return str(document[name])
        return str(document.get("_id"))


@dataclass
class MigrationReport:
    """Per-run bookkeeping. Every scanned document lands in exactly one count."""

    migration: str
    collection: str
    dry_run: bool = False
    scanned: int = 0
    updated: int = 0
    skipped: int = 0
    errored: int = 0
    errors: list[PerDocumentMigrationError] = field(default_factory=list)
    flagged_for_review: list[Any] = field(default_factory=list)
    assigned_defaults: list[dict[str, Any]] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.updated + self.skipped

    @property
    def accounted(self) -> bool:
        return self.updated + self.skipped + self.errored == self.scanned

    def as_dict(self) -> dict[str, Any]:
        return {
            "migration": self.migration,
            "collection": self.collection,
            "dry_run": self.dry_run,
            "scanned": self.scanned,
            "updated": self.updated,
            "skipped": self.skipped,
            "errored": self.errored,
            "errors": [
                {"document_id": str(e.document_id), "error": e.message} for e in self.errors
            ],
            "flagged_for_review": [str(i) for i in self.flagged_for_review],
        }


@dataclass
class VerificationReport:
    """Shape census of a collection for one migration."""

    migration: str
    collection: str
    total: int = 0
    counts: dict[str, int] = field(
        default_factory=lambda: {"canonical": 0, "legacy": 0, "missing": 0}
    )
    samples: dict[str, list[Document]] = field(
        default_factory=lambda: {"canonical": [], "legacy": [], "missing": []}
    )

    @property
    def is_clean(self) -> bool:
        return self.counts["legacy"] == 0 and self.counts["missing"] == 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def field_changes(
    fields: tuple[str, ...],
    before: Document,
    after: Document,
) -> tuple[dict[str, Any], list[str]]:
    """Return the ``$set`` and ``$unset`` parts needed to turn before into after."""

    set_fields = {
        name: after[name]
        for name in fields
        if name in after and (name not in before or before[name] != after[name])
    }
    unset_fields = [name for name in fields if name in before and name not in after]
    return set_fields, unset_fields


class SchemaMigrator:
    """Runs ``DocumentMigration``s against a document store.

    Attributes:
        store: Document store to read from and write to.
        timestamp_field: Field stamped on every rewritten document.
    """

    def __init__(
        self,
        store: AbstractDocumentStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
        timestamp_field: str = "updatedAt",
    ) -> None:
        self.store = store
        self.timestamp_field = timestamp_field
        self._clock = clock

    def upgrade_document(
        self,
        migration: DocumentMigration,
        document: Document,
        context: Any = None,
    ) -> tuple[Document, list[SchemaStep]]:
        """Fold a document through upgrade steps until it is canonical.

        Returns:
            The upgraded document (the input is left untouched) and the steps
            applied, empty when the document was already canonical.

        Raises:
            ValueError: Unknown version, or a step missed its declared target.
        """
        current = document
        applied: list[SchemaStep] = []
        version = migration.detect(current)

        for _ in range(len(migration.steps)):
            if version == migration.canonical:
                break
            step = migration.step_from(version)
            current = step.upgrade(copy.deepcopy(current), context)
            version = migration.detect(current)
            if version != step.target:
                raise ValueError(
                    f"Step {step.source!r} -> {step.target!r} produced version {version!r}"
                )
            applied.append(step)

        if version != migration.canonical:
            raise ValueError(f"Document did not reach {migration.canonical!r}, stuck at {version!r}")
        return current, applied

    def run(self, migration: DocumentMigration, *, dry_run: bool = False) -> MigrationReport:
        """Migrate every document matched by the migration's selector.

        Raises:
            StoreUnavailableError: The store became unreachable; nothing after
                the failing document was attempted.
        """
        report = MigrationReport(
            migration=migration.name,
            collection=migration.collection,
            dry_run=dry_run,
        )
        context = migration.prepare(self.store) if migration.prepare else None
        documents = self.store.find(migration.collection, migration.selector)
        report.scanned = len(documents)

        logger.info(
            "migration.started",
            extra={
                "migration": migration.name,
                "collection": migration.collection,
                "matched": report.scanned,
                "dry_run": dry_run,
            },
        )

        for position, document in enumerate(documents, start=1):
            self._migrate_one(
                migration,
                document,
                context,
                report,
                dry_run=dry_run,
                progress=f"{position}/{report.scanned}",
            )

        summary = report.as_dict()
        summary.pop("errors")
        summary.pop("flagged_for_review")
        if report.errored:
            logger.warning("migration.completed_with_errors", extra=summary)
        else:
            logger.info("migration.completed", extra=summary)
        return report

    def _migrate_one(
        self,
        migration: DocumentMigration,
        document: Document,
        context: Any,
        report: MigrationReport,
        *,
        dry_run: bool,
        progress: str,
    ) -> None:
        document_id = document.get("_id")
        log_fields = {
            "migration": migration.name,
            "document_id": str(document_id),
            "label": migration.label(document),
            "progress": progress,
        }

        try:
            upgraded, steps = self.upgrade_document(migration, document, context)
            set_fields, unset_fields = field_changes(migration.fields, document, upgraded)

            if not steps or not (set_fields or unset_fields):
                report.skipped += 1
                logger.debug("migration.document_skipped", extra=log_fields)
                return

            if not dry_run:
                stamped = {**set_fields, self.timestamp_field: self._clock()}
                found = self.store.update_one(
                    migration.collection,
                    document_id,
                    set_fields=stamped,
                    unset_fields=unset_fields,
                )
                if not found:
                    report.skipped += 1
                    logger.warning("migration.document_vanished", extra=log_fields)
                    return
        except StoreUnavailableError:
            raise
        except Exception as exc:
            error = PerDocumentMigrationError(document_id, exc)
            report.errored += 1
            report.errors.append(error)
            logger.error(
                "migration.document_failed",
                extra={**log_fields, "error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return

        report.updated += 1
        logger.info(
            "migration.document_updated",
            extra={
                **log_fields,
                "versions": [step.source for step in steps],
                "set": sorted(set_fields),
                "unset": unset_fields,
                "dry_run": dry_run,
            },
        )

        if any(step.completes_data for step in steps):
            report.assigned_defaults.append({"document_id": document_id, "fields": set_fields})
            logger.warning(
                "migration.default_assigned",
                extra={**log_fields, "assigned": set_fields},
            )
        if any(step.needs_review for step in steps):
            report.flagged_for_review.append(document_id)
            logger.warning("migration.flagged_for_review", extra=log_fields)

    def verify(self, migration: DocumentMigration, *, sample_size: int = 3) -> VerificationReport:
        """Classify every document of the collection without modifying any."""

        report = VerificationReport(migration=migration.name, collection=migration.collection)
        for document in self.store.find(migration.collection):
            version = migration.detect(document)
            if version == migration.canonical:
                bucket = "canonical"
            elif version == MISSING:
                bucket = "missing"
            else:
                bucket = "legacy"

            report.total += 1
            report.counts[bucket] += 1
            if len(report.samples[bucket]) < sample_size:
                shown = ("_id", *migration.label_fields, *migration.fields)
                report.samples[bucket].append(
                    {name: document[name] for name in shown if name in document}
                )

        log = logger.info if report.is_clean else logger.warning
        log(
            "migration.verified",
            extra={
                "migration": migration.name,
                "collection": migration.collection,
                "total": report.total,
                **report.counts,
            },
        )
        return report
