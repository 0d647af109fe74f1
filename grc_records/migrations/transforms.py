"""Shape detection and loss-free reshaping helpers shared by migrations."""

from __future__ import annotations

import re
from typing import Any

from grc_records.adapters.store.base import Document
from grc_records.services.schema_migrator import MISSING

_DELIMITERS = re.compile(r"[,;|\n\r]+")

# Version tags for fields whose canonical shape is a list of strings
NULL = "null"
STRING = "string"
SCALAR = "scalar"
STRING_LIST = "string-list"
MIXED_LIST = "mixed-list"


def split_delimited(text: str) -> list[str]:
    """Split free text on commas, semicolons, pipes or newlines.

    >>> split_delimited("a, b ,c")
    ['a', 'b', 'c']
    >>> split_delimited(" ;; ")
    []
    """
    return [token.strip() for token in _DELIMITERS.split(text) if token.strip()]


def wrap_scalar(value: Any) -> list[Any]:
    """Wrap a single value in a list; ``None`` becomes an empty list."""

    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    return [value]


def list_field_version(document: Document, field: str) -> str:
    """Classify a field whose canonical shape is a list of strings."""

    if field not in document:
        return MISSING
    value = document[field]
    if value is None:
        return NULL
    if isinstance(value, str):
        return STRING
    if isinstance(value, list):
        if all(isinstance(item, str) for item in value):
            return STRING_LIST
        return MIXED_LIST
    return SCALAR


NON_STRING_TYPES = ("object", "number", "bool", "null", "objectId")


def legacy_list_selector(field: str) -> dict[str, Any]:
    """Filter for documents whose ``field`` is not yet a list of strings.

    Matches an absent, null or non-array value, and arrays holding at least
    one non-string element (``$type`` is checked element-wise on arrays).
    Arrays of strings, including the empty array, never match.
    """
    return {
        "$or": [
            {field: {"$not": {"$type": "array"}}},
            {field: {"$type": list(NON_STRING_TYPES)}},
        ]
    }


def normalize_string_list(items: list[Any]) -> list[str]:
    """Stringify list items, dropping empties and ``None``."""

    normalized = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if text:
            normalized.append(text)
    return normalized
