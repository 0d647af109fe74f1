"""Registry of the document migrations known to the operator CLI."""

from __future__ import annotations

from grc_records.core.errors import ValidationAppError
from grc_records.migrations.risks import (
    RISK_CONTROLS_REFERENCE,
    RISK_CURRENT_CONTROLS,
    RISK_INFORMATION_ASSETS,
    RISK_PHASE_CASE,
    RISK_RATING_SCALE,
)
from grc_records.migrations.soa_controls import SOA_CONTROL_STATUS
from grc_records.migrations.third_parties import THIRD_PARTY_INFORMATION_ASSETS
from grc_records.migrations.threats import THREAT_INFORMATION_ASSETS, THREAT_MITRE_TACTIC
from grc_records.migrations.users import USER_ROLES
from grc_records.migrations.workshops import WORKSHOP_TREATMENT_MINUTES
from grc_records.services.schema_migrator import DocumentMigration

MIGRATIONS: dict[str, DocumentMigration] = {
    migration.name: migration
    for migration in (
        USER_ROLES,
        RISK_CURRENT_CONTROLS,
        RISK_CONTROLS_REFERENCE,
        RISK_INFORMATION_ASSETS,
        RISK_RATING_SCALE,
        RISK_PHASE_CASE,
        THIRD_PARTY_INFORMATION_ASSETS,
        THREAT_INFORMATION_ASSETS,
        THREAT_MITRE_TACTIC,
        SOA_CONTROL_STATUS,
        WORKSHOP_TREATMENT_MINUTES,
    )
}


def all_migrations() -> list[DocumentMigration]:
    """Every registered migration, in the order an operator would run them."""
    return list(MIGRATIONS.values())


def get_migration(name: str) -> DocumentMigration:
    """Look up a migration by its CLI name.

    Raises:
        ValidationAppError: No migration is registered under ``name``.
    """
    try:
        return MIGRATIONS[name]
    except KeyError:
        raise ValidationAppError(
            code="unknown_migration",
            message=f"Unknown migration: {name}",
            details={"hint": f"Choose one of: {', '.join(MIGRATIONS)}"},
        ) from None
