"""Migrations for the ``third-parties`` collection."""

from __future__ import annotations

from grc_records.migrations.builders import pluralize_migration

THIRD_PARTY_INFORMATION_ASSETS = pluralize_migration(
    name="third-party-information-assets",
    collection="third-parties",
    singular="informationAssetId",
    plural="informationAssetIds",
    label_fields=("vendorId", "vendorName"),
    description=(
        "Vendors can be linked to several information assets: "
        "'informationAssetId' becomes the 'informationAssetIds' list."
    ),
)
