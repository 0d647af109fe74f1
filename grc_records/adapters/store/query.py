"""Evaluate the subset of MongoDB filter syntax the migrations use.

Supported: ``$or``, ``$and``, ``$nor`` at the top level; ``$exists``,
``$type``, ``$in``, ``$nin``, ``$ne``, ``$eq`` and ``$not`` per field; plain
equality; dotted paths that traverse arrays of sub-documents.

Array semantics follow MongoDB: ``{"f": {"$type": "string"}}`` matches when
``f`` is a string *or* an array holding at least one string, while
``{"f": {"$type": "array"}}`` matches only when ``f`` itself is an array.
"""

from __future__ import annotations

from typing import Any, Mapping

from bson import ObjectId

_MISSING = object()

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
    "bool": lambda v: isinstance(v, bool),
    "int": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "double": lambda v: isinstance(v, float),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "null": lambda v: v is None,
    "objectId": lambda v: isinstance(v, ObjectId),
}


def resolve_path(document: Mapping[str, Any], path: str) -> list[Any]:
    """Return every value reachable at a dotted path.

    Arrays met along the way fan out over their sub-document elements, so
    ``"extensions.selectedTreatments"`` yields one value per extension item
    that has the key. A missing path yields an empty list.
    """

    current: list[Any] = [document]
    for part in path.split("."):
        following: list[Any] = []
        for value in current:
            if isinstance(value, Mapping):
                found = value.get(part, _MISSING)
                if found is not _MISSING:
                    following.append(found)
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, Mapping) and part in item:
                        following.append(item[part])
        current = following
    return current


def _candidates(value: Any) -> list[Any]:
    """The value itself plus, for arrays, each element."""

    if isinstance(value, list):
        return [value, *value]
    return [value]


def _type_matches(values: list[Any], type_name: str) -> bool:
    try:
        check = _TYPE_CHECKS[type_name]
    except KeyError:
        raise ValueError(f"Unsupported $type alias: {type_name!r}") from None

    if type_name == "array":
        return any(check(v) for v in values)
    return any(check(c) for v in values for c in _candidates(v))


def _equals(values: list[Any], expected: Any) -> bool:
    if not values:
        return expected is None
    return any(c == expected for v in values for c in _candidates(v))


def _field_matches(values: list[Any], condition: Any) -> bool:
    if not isinstance(condition, Mapping) or not any(str(k).startswith("$") for k in condition):
        return _equals(values, condition)

    for op, arg in condition.items():
        if op == "$exists":
            if bool(values) != bool(arg):
                return False
        elif op == "$type":
            names = arg if isinstance(arg, (list, tuple)) else [arg]
            if not any(_type_matches(values, name) for name in names):
                return False
        elif op == "$in":
            if not any(_equals(values, option) for option in arg):
                return False
        elif op == "$nin":
            if any(_equals(values, option) for option in arg):
                return False
        elif op == "$eq":
            if not _equals(values, arg):
                return False
        elif op == "$ne":
            if _equals(values, arg):
                return False
        elif op == "$not":
            if _field_matches(values, arg):
                return False
        else:
            raise ValueError(f"Unsupported query operator: {op}")
    return True


def matches(document: Mapping[str, Any], selector: Mapping[str, Any] | None) -> bool:
    """Return True if ``document`` satisfies the MongoDB-style ``selector``."""

    if not selector:
        return True

    for key, condition in selector.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
        elif key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
        elif key == "$nor":
            if any(matches(document, sub) for sub in condition):
                return False
        elif key.startswith("$"):
            raise ValueError(f"Unsupported top-level operator: {key}")
        elif not _field_matches(resolve_path(document, key), condition):
            return False
    return True
