"""Migrations for the Statement of Applicability ``soa_controls`` collection."""

from __future__ import annotations

from typing import Any

from grc_records.adapters.store.base import Document
from grc_records.migrations.transforms import wrap_scalar
from grc_records.services.schema_migrator import MISSING, DocumentMigration, SchemaStep

SOA_COLLECTION = "soa_controls"

CONTROL_STATUSES = (
    "Implemented",
    "Partially Implemented",
    "Planning Implementation",
    "Not Implemented",
)
DEFAULT_APPLICABILITY = "Applicable"

# Old kebab-case ``status`` values; "excluded" has no counterpart yet
LEGACY_STATUS = {
    "implemented": "Implemented",
    "not-implemented": "Not Implemented",
    "excluded": "Not Implemented",
    "partially-implemented": "Partially Implemented",
    "planning": "Planning Implementation",
}

STATUS_FIELD = "status-field"
INCOMPLETE = "incomplete"
CURRENT = "control-status"


def _blank(value: Any) -> bool:
    return value is None or value == ""


def _control_version(document: Document) -> str:
    if "status" in document:
        return STATUS_FIELD
    if _blank(document.get("controlStatus")):
        return MISSING
    if _blank(document.get("controlApplicability")) or not isinstance(
        document.get("relatedRisks"), list
    ):
        return INCOMPLETE
    return CURRENT


def control_status(value: Any) -> str:
    """Map a legacy ``status`` value onto the current status names.

    >>> control_status("partially-implemented")
    'Partially Implemented'

    Raises:
        ValueError: The value is neither a known legacy value nor a current name.
    """
    if value in CONTROL_STATUSES:
        return value
    key = str(value or "").strip().lower()
    if key in LEGACY_STATUS:
        return LEGACY_STATUS[key]
    raise ValueError(f"Unknown control status: {value!r}")


def _complete(document: Document) -> Document:
    if _blank(document.get("controlApplicability")):
        document["controlApplicability"] = DEFAULT_APPLICABILITY
    if not isinstance(document.get("relatedRisks"), list):
        document["relatedRisks"] = wrap_scalar(document.get("relatedRisks"))
    return document


def _rename_status(document: Document, _context: Any) -> Document:
    status = document.pop("status")
    if _blank(document.get("controlStatus")):
        document["controlStatus"] = control_status(status)
    return _complete(document)


def _fill_defaults(document: Document, _context: Any) -> Document:
    return _complete(document)


def _assume_not_implemented(document: Document, _context: Any) -> Document:
    document["controlStatus"] = "Not Implemented"
    return _complete(document)


SOA_CONTROL_STATUS = DocumentMigration(
    name="soa-control-status",
    collection=SOA_COLLECTION,
    fields=("status", "controlStatus", "controlApplicability", "relatedRisks"),
    canonical=CURRENT,
    detect=_control_version,
    steps=(
        SchemaStep(STATUS_FIELD, CURRENT, _rename_status, completes_data=True),
        SchemaStep(INCOMPLETE, CURRENT, _fill_defaults, completes_data=True),
        SchemaStep(
            MISSING,
            CURRENT,
            _assume_not_implemented,
            completes_data=True,
            needs_review=True,
        ),
    ),
    selector={
        "$or": [
            {"status": {"$exists": True}},
            {"controlStatus": {"$in": [None, ""]}},
            {"controlApplicability": {"$in": [None, ""]}},
            {"relatedRisks": {"$not": {"$type": "array"}}},
        ]
    },
    description=(
        "Kebab-case 'status' becomes 'controlStatus'; controls gain "
        "'controlApplicability' (Applicable) and an empty 'relatedRisks' list."
    ),
    label_fields=("id",),
)
