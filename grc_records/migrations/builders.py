"""Factories for the two recurring migration patterns.

- ``string_list_migration``: a field that used to hold free text (or nothing)
  and now holds a list of discrete strings.
- ``pluralize_migration``: a singular field replaced by a plural list field.
"""

from __future__ import annotations

from typing import Any, Sequence

from grc_records.adapters.store.base import Document
from grc_records.migrations.transforms import (
    MIXED_LIST,
    NULL,
    SCALAR,
    STRING,
    STRING_LIST,
    legacy_list_selector,
    list_field_version,
    normalize_string_list,
    split_delimited,
    wrap_scalar,
)
from grc_records.services.schema_migrator import MISSING, DocumentMigration, SchemaStep


def string_list_migration(
    *,
    name: str,
    collection: str,
    field: str,
    description: str,
    label_fields: tuple[str, ...] = (),
    review_when_missing: bool = False,
) -> DocumentMigration:
    """Build a migration whose canonical shape for ``field`` is ``list[str]``.

    Strings are split on the usual delimiters, scalars are wrapped, and an
    absent or null field becomes an empty list. With ``review_when_missing``
    documents that had no value at all are flagged rather than guessed at.
    """

    def set_value(value_of):
        def upgrade(document: Document, _context: Any) -> Document:
            document[field] = value_of(document.get(field))
            return document

        return upgrade

    return DocumentMigration(
        name=name,
        collection=collection,
        fields=(field,),
        canonical=STRING_LIST,
        detect=lambda document: list_field_version(document, field),
        steps=(
            SchemaStep(
                MISSING,
                STRING_LIST,
                set_value(lambda _value: []),
                needs_review=review_when_missing,
            ),
            SchemaStep(NULL, STRING_LIST, set_value(lambda _value: []), needs_review=review_when_missing),
            SchemaStep(STRING, STRING_LIST, set_value(split_delimited)),
            SchemaStep(SCALAR, MIXED_LIST, set_value(wrap_scalar)),
            SchemaStep(MIXED_LIST, STRING_LIST, set_value(normalize_string_list)),
        ),
        selector=legacy_list_selector(field),
        description=description,
        label_fields=label_fields,
    )


SINGULAR = "singular"
PLURAL = "plural-list"
PLURAL_STRING = "plural-string"
PLURAL_WITH_SINGULAR = "plural-with-singular"
PLURAL_SCALAR = "plural-scalar"


def pluralize_migration(
    *,
    name: str,
    collection: str,
    singular: str,
    plural: str,
    description: str,
    default: Sequence[Any] = (),
    default_is_assigned: bool = False,
    label_fields: tuple[str, ...] = (),
) -> DocumentMigration:
    """Build a migration replacing ``singular`` with a ``plural`` list.

    Args:
        default: Value given to documents that have neither field.
        default_is_assigned: The default is not derived from the document
            (e.g. a role) and must be logged for audit.
    """

    def detect(document: Document) -> str:
        plural_value = document.get(plural)
        if isinstance(plural_value, list):
            return PLURAL_WITH_SINGULAR if singular in document else PLURAL
        if isinstance(plural_value, str):
            return PLURAL_STRING
        if plural_value is not None:
            return PLURAL_SCALAR
        if document.get(singular) not in (None, ""):
            return SINGULAR
        return MISSING

    def merge(values: list[Any], extra: Any) -> list[Any]:
        if extra not in (None, "") and extra not in values:
            values.append(extra)
        return values

    def from_singular(document: Document, _context: Any) -> Document:
        document[plural] = [document.pop(singular)]
        return document

    def from_plural_string(document: Document, _context: Any) -> Document:
        value = document[plural].strip()
        document[plural] = merge([value] if value else [], document.pop(singular, None))
        return document

    def from_plural_scalar(document: Document, _context: Any) -> Document:
        document[plural] = merge(wrap_scalar(document[plural]), document.pop(singular, None))
        return document

    def drop_singular(document: Document, _context: Any) -> Document:
        document[plural] = merge(list(document[plural]), document.pop(singular))
        return document

    def assign_default(document: Document, _context: Any) -> Document:
        document.pop(singular, None)
        document[plural] = list(default)
        return document

    return DocumentMigration(
        name=name,
        collection=collection,
        fields=(plural, singular),
        canonical=PLURAL,
        detect=detect,
        steps=(
            SchemaStep(SINGULAR, PLURAL, from_singular),
            SchemaStep(PLURAL_STRING, PLURAL, from_plural_string),
            SchemaStep(PLURAL_SCALAR, PLURAL, from_plural_scalar),
            SchemaStep(PLURAL_WITH_SINGULAR, PLURAL, drop_singular),
            SchemaStep(MISSING, PLURAL, assign_default, completes_data=default_is_assigned),
        ),
        selector={
            "$or": [
                legacy_list_selector(plural),
                {singular: {"$exists": True}},
            ]
        },
        description=description,
        label_fields=label_fields,
    )
