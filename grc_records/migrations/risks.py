"""Migrations for the ``risks`` collection."""

from __future__ import annotations

import logging
from typing import Any

from grc_records.adapters.store.base import AbstractDocumentStore, Document
from grc_records.migrations.builders import string_list_migration
from grc_records.migrations.transforms import (
    MIXED_LIST,
    NULL,
    SCALAR,
    STRING,
    STRING_LIST,
    legacy_list_selector,
    list_field_version,
    split_delimited,
)
from grc_records.services.schema_migrator import MISSING, DocumentMigration, SchemaStep

logger = logging.getLogger(__name__)

RISK_LABEL = ("riskId",)

RISK_CURRENT_CONTROLS = string_list_migration(
    name="risk-current-controls",
    collection="risks",
    field="currentControls",
    label_fields=RISK_LABEL,
    description="Free-text 'currentControls' split into a list of individual controls.",
)

RISK_CONTROLS_REFERENCE = string_list_migration(
    name="risk-controls-reference",
    collection="risks",
    field="currentControlsReference",
    label_fields=RISK_LABEL,
    review_when_missing=True,
    description=(
        "'currentControlsReference' becomes a list of SoA control ids. Risks with "
        "no reference get an empty list and are flagged for manual review."
    ),
)


# -- informationAsset: names -> information-assets ids -----------------------

INFORMATION_ASSETS_COLLECTION = "information-assets"


def load_asset_ids_by_name(store: AbstractDocumentStore) -> dict[str, str]:
    """Map lower-cased asset names to their ids."""

    lookup: dict[str, str] = {}
    for asset in store.find(INFORMATION_ASSETS_COLLECTION):
        name = asset.get("informationAsset")
        asset_id = asset.get("id")
        if isinstance(name, str) and asset_id:
            lookup[name.strip().lower()] = str(asset_id)
    logger.info("migration.asset_lookup_loaded", extra={"assets": len(lookup)})
    return lookup


def _asset_names_to_ids(document: Document, lookup: dict[str, str] | None) -> Document:
    ids = []
    for name in split_delimited(document["informationAsset"]):
        asset_id = (lookup or {}).get(name.lower())
        if asset_id is None:
            # unknown names stay as-is
            logger.warning(
                "migration.asset_unresolved",
                extra={"risk_id": document.get("riskId"), "asset_name": name},
            )
            asset_id = name
        ids.append(asset_id)
    document["informationAsset"] = ids
    return document


def _asset_ids(items: list[Any], lookup: dict[str, str] | None) -> list[str]:
    """Ids of asset references given as bare ids or ``{id, name}`` objects.

    Raises:
        ValueError: An object carries neither an id nor a known asset name.
    """

    ids = []
    for item in items:
        if isinstance(item, dict):
            name = item.get("name")
            item = item.get("id") or (lookup or {}).get(str(name or "").strip().lower())
            if item is None:
                raise ValueError(f"Asset reference without id: {name!r}")
        if item not in (None, ""):
            ids.append(str(item))
    return ids


def _asset_objects_to_ids(document: Document, lookup: dict[str, str] | None) -> Document:
    document["informationAsset"] = _asset_ids(document["informationAsset"], lookup)
    return document


def _wrap_asset_id(document: Document, lookup: dict[str, str] | None) -> Document:
    document["informationAsset"] = _asset_ids([document["informationAsset"]], lookup)
    return document


def _empty_assets(document: Document, _context: Any) -> Document:
    document["informationAsset"] = []
    return document


RISK_INFORMATION_ASSETS = DocumentMigration(
    name="risk-information-assets",
    collection="risks",
    fields=("informationAsset",),
    canonical=STRING_LIST,
    detect=lambda document: list_field_version(document, "informationAsset"),
    steps=(
        SchemaStep(STRING, STRING_LIST, _asset_names_to_ids),
        SchemaStep(MIXED_LIST, STRING_LIST, _asset_objects_to_ids),
        SchemaStep(SCALAR, STRING_LIST, _wrap_asset_id),
        SchemaStep(NULL, STRING_LIST, _empty_assets),
        SchemaStep(MISSING, STRING_LIST, _empty_assets),
    ),
    selector={
        "$or": [
            legacy_list_selector("informationAsset"),
            {"informationAsset": {"$type": "object"}},
        ]
    },
    description=(
        "'informationAsset' was a comma separated list of asset names, then a list "
        "of {id, name} objects; it is now a list of information-asset ids."
    ),
    label_fields=RISK_LABEL,
    prepare=load_asset_ids_by_name,
)


# -- three-level -> five-level rating scale ------------------------------------

CONSEQUENCE_SCALE = {"Low": "Minor", "Medium": "Moderate", "High": "Major"}
LIKELIHOOD_SCALE = {"Low": "Rare", "Medium": "Possible", "High": "Likely"}
RATING_SCALE = {"Medium": "Moderate"}

_SCALE_BY_FIELD = {
    "consequence": CONSEQUENCE_SCALE,
    "residualConsequence": CONSEQUENCE_SCALE,
    "likelihood": LIKELIHOOD_SCALE,
    "residualLikelihood": LIKELIHOOD_SCALE,
    "currentRiskRating": RATING_SCALE,
    "residualRiskRating": RATING_SCALE,
}


def _rating_version(document: Document) -> str:
    for field, scale in _SCALE_BY_FIELD.items():
        if document.get(field) in scale:
            return "three-level"
    return "five-level"


def _rescale(document: Document, _context: Any) -> Document:
    for field, scale in _SCALE_BY_FIELD.items():
        value = document.get(field)
        if value in scale:
            document[field] = scale[value]
    return document


RISK_RATING_SCALE = DocumentMigration(
    name="risk-rating-scale",
    collection="risks",
    fields=tuple(_SCALE_BY_FIELD),
    canonical="five-level",
    detect=_rating_version,
    steps=(SchemaStep("three-level", "five-level", _rescale),),
    selector={
        "$or": [{field: {"$in": list(scale)}} for field, scale in _SCALE_BY_FIELD.items()]
    },
    description=(
        "Consequence Low/Medium/High -> Minor/Moderate/Major, likelihood "
        "Low/Medium/High -> Rare/Possible/Likely, risk rating Medium -> Moderate."
    ),
    label_fields=RISK_LABEL,
)


# -- currentPhase capitalisation ----------------------------------------------

PHASES = ("Draft", "Identification", "Analysis", "Evaluation", "Treatment", "Monitoring")
_PHASE_BY_LOWER = {phase.lower(): phase for phase in PHASES}


def _phase_version(document: Document) -> str:
    return "lowercase" if document.get("currentPhase") in _PHASE_BY_LOWER else "proper-case"


def _capitalise_phase(document: Document, _context: Any) -> Document:
    document["currentPhase"] = _PHASE_BY_LOWER[document["currentPhase"]]
    return document


RISK_PHASE_CASE = DocumentMigration(
    name="risk-phase-case",
    collection="risks",
    fields=("currentPhase",),
    canonical="proper-case",
    detect=_phase_version,
    steps=(SchemaStep("lowercase", "proper-case", _capitalise_phase),),
    selector={"currentPhase": {"$in": list(_PHASE_BY_LOWER)}},
    description="Lower-case 'currentPhase' values rewritten in proper case.",
    label_fields=RISK_LABEL,
)
