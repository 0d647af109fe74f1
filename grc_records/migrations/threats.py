"""Migrations for the ``threats`` collection."""

from __future__ import annotations

from typing import Any

from grc_records.adapters.store.base import Document
from grc_records.migrations.builders import string_list_migration
from grc_records.services.mitre_sample_data import TACTICS
from grc_records.services.schema_migrator import DocumentMigration, SchemaStep

THREAT_LABEL = ("id", "name")

THREAT_INFORMATION_ASSETS = string_list_migration(
    name="threat-information-assets",
    collection="threats",
    field="informationAssets",
    label_fields=THREAT_LABEL,
    description="Threats gained an 'informationAssets' id list; absent means none linked yet.",
)


# -- mitreTactic: ATT&CK tactic ids -> tactic names ---------------------------

TACTIC_NAME_BY_ID = dict(TACTICS)
TACTIC_NAMES = frozenset(TACTIC_NAME_BY_ID.values())

TACTIC_ID = "tactic-id"
TACTIC_AS_TECHNIQUE = "tactic-as-technique"
TACTIC_NAME = "tactic-name"


def _text(document: Document, field: str) -> str | None:
    value = document.get(field)
    return value if isinstance(value, str) else None


def _mitre_version(document: Document) -> str:
    if _text(document, "mitreTechnique") in TACTIC_NAMES:
        return TACTIC_AS_TECHNIQUE
    if _text(document, "mitreTactic") in TACTIC_NAME_BY_ID:
        return TACTIC_ID
    return TACTIC_NAME


def _name_tactic(document: Document, _context: Any) -> Document:
    tactic = _text(document, "mitreTactic")
    if tactic in TACTIC_NAME_BY_ID:
        document["mitreTactic"] = TACTIC_NAME_BY_ID[tactic]
    return document


def _move_tactic_out_of_technique(document: Document, context: Any) -> Document:
    """A tactic name stored as the technique moves to ``mitreTactic``.

    The technique itself is unknown and left empty for a reviewer.
    """
    document = _name_tactic(document, context)
    tactic_name = document["mitreTechnique"]
    if document.get("mitreTactic") not in (None, "", tactic_name):
        raise ValueError(
            f"mitreTechnique holds tactic {tactic_name!r} but mitreTactic is "
            f"{document['mitreTactic']!r}"
        )
    document["mitreTactic"] = tactic_name
    del document["mitreTechnique"]
    return document


THREAT_MITRE_TACTIC = DocumentMigration(
    name="threat-mitre-tactic",
    collection="threats",
    fields=("mitreTactic", "mitreTechnique"),
    canonical=TACTIC_NAME,
    detect=_mitre_version,
    steps=(
        SchemaStep(TACTIC_ID, TACTIC_NAME, _name_tactic),
        SchemaStep(
            TACTIC_AS_TECHNIQUE,
            TACTIC_NAME,
            _move_tactic_out_of_technique,
            needs_review=True,
        ),
    ),
    selector={
        "$or": [
            {"mitreTactic": {"$in": sorted(TACTIC_NAME_BY_ID)}},
            {"mitreTechnique": {"$in": sorted(TACTIC_NAMES)}},
        ]
    },
    description=(
        "'mitreTactic' held ATT&CK ids (TA0001) instead of names; tactic names "
        "found in 'mitreTechnique' move to 'mitreTactic' and are flagged for review."
    ),
    label_fields=THREAT_LABEL,
)
