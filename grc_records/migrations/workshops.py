"""Migrations for the ``workshops`` collection."""

from __future__ import annotations

from typing import Any

from grc_records.adapters.store.base import Document
from grc_records.services.schema_migrator import DocumentMigration, SchemaStep

WORKSHOP_SECTIONS = ("extensions", "closure", "newRisks")

BARE_IDS = "bare-ids"
MINUTES = "minutes"


def treatment_minutes(treatment_id: Any) -> dict[str, Any]:
    """Empty meeting-minutes record for one treatment."""

    return {
        "treatmentJiraTicket": treatment_id,
        "actionsTaken": "",
        "toDo": "",
        "outcome": "",
    }


def _section_items(document: Document, section: str) -> list[Any]:
    items = document.get(section)
    return items if isinstance(items, list) else []


def _minutes_version(document: Document) -> str:
    for section in WORKSHOP_SECTIONS:
        for item in _section_items(document, section):
            if not isinstance(item, dict):
                continue
            treatments = item.get("selectedTreatments")
            if isinstance(treatments, list) and any(isinstance(t, str) for t in treatments):
                return BARE_IDS
    return MINUTES


def _ids_to_minutes(document: Document, _context: Any) -> Document:
    for section in WORKSHOP_SECTIONS:
        for item in _section_items(document, section):
            if not isinstance(item, dict) or not isinstance(item.get("selectedTreatments"), list):
                continue
            item["selectedTreatments"] = [
                treatment_minutes(t) if isinstance(t, str) else t
                for t in item["selectedTreatments"]
            ]
    return document


WORKSHOP_TREATMENT_MINUTES = DocumentMigration(
    name="workshop-treatment-minutes",
    collection="workshops",
    fields=WORKSHOP_SECTIONS,
    canonical=MINUTES,
    detect=_minutes_version,
    steps=(SchemaStep(BARE_IDS, MINUTES, _ids_to_minutes),),
    selector={
        "$or": [
            {f"{section}.selectedTreatments": {"$type": "string"}}
            for section in WORKSHOP_SECTIONS
        ]
    },
    description=(
        "Workshop agenda items listed treatments as bare Jira ticket ids; each "
        "becomes a minutes record with empty actionsTaken, toDo and outcome."
    ),
    label_fields=("id", "title"),
)
