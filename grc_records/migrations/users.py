"""Migrations for the ``users`` collection."""

from __future__ import annotations

from grc_records.migrations.builders import pluralize_migration

DEFAULT_ROLE = "viewer"

USER_ROLES = pluralize_migration(
    name="user-roles",
    collection="users",
    singular="role",
    plural="roles",
    default=(DEFAULT_ROLE,),
    default_is_assigned=True,
    label_fields=("email",),
    description=(
        "Users moved from a single 'role' to a 'roles' list. Users without any "
        f"role are given ['{DEFAULT_ROLE}'] (least privilege) and logged for review."
    ),
)
