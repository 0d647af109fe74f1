"""Tests for MongoDB-style selector matching used by the in-memory store."""

import pytest
from bson import ObjectId

from grc_records.adapters.store.query import matches, resolve_path
from grc_records.migrations.transforms import legacy_list_selector


class TestResolvePath:
    def test_plain_and_missing_fields(self) -> None:
        assert resolve_path({"a": 1}, "a") == [1]
        assert resolve_path({"a": 1}, "b") == []

    def test_dotted_path_fans_out_over_arrays(self) -> None:
        doc = {
            "extensions": [
                {"selectedTreatments": ["T-1"]},
                {"other": True},
                {"selectedTreatments": []},
            ]
        }
        assert resolve_path(doc, "extensions.selectedTreatments") == [["T-1"], []]


class TestTypeOperator:
    def test_string_matches_scalar_or_array_element(self) -> None:
        selector = {"tags": {"$type": "string"}}
        assert matches({"tags": "a"}, selector)
        assert matches({"tags": [1, "a"]}, selector)
        assert not matches({"tags": [1, 2]}, selector)
        assert not matches({}, selector)

    def test_array_matches_only_the_array_itself(self) -> None:
        selector = {"tags": {"$type": "array"}}
        assert matches({"tags": []}, selector)
        assert matches({"tags": ["a"]}, selector)
        assert not matches({"tags": "a"}, selector)

    def test_object_id_alias(self) -> None:
        assert matches({"ref": ObjectId()}, {"ref": {"$type": "objectId"}})

    def test_unknown_alias_raises(self) -> None:
        with pytest.raises(ValueError):
            matches({"a": 1}, {"a": {"$type": "decimal"}})


class TestLegacyListSelector:
    """Only lists made entirely of strings count as migrated."""

    @pytest.mark.parametrize(
        ("doc", "expected"),
        [
            ({}, True),
            ({"roles": None}, True),
            ({"roles": "admin"}, True),
            ({"roles": 7}, True),
            ({"roles": {"id": 1}}, True),
            ({"roles": []}, False),
            ({"roles": ["admin"]}, False),
            ({"roles": [{"id": 1}]}, True),
            ({"roles": ["admin", 5, None]}, True),
            ({"roles": ["admin", True]}, True),
        ],
    )
    def test_matches_anything_but_string_lists(self, doc: dict, expected: bool) -> None:
        assert matches(doc, legacy_list_selector("roles")) is expected


class TestOperators:
    def test_exists(self) -> None:
        assert matches({"role": None}, {"role": {"$exists": True}})
        assert matches({}, {"role": {"$exists": False}})
        assert not matches({}, {"role": {"$exists": True}})

    def test_in_and_nin(self) -> None:
        assert matches({"phase": "draft"}, {"phase": {"$in": ["draft", "analysis"]}})
        assert not matches({"phase": "Draft"}, {"phase": {"$in": ["draft"]}})
        assert matches({"phase": "Draft"}, {"phase": {"$nin": ["draft"]}})

    def test_equality_against_array_elements(self) -> None:
        assert matches({"roles": ["admin", "viewer"]}, {"roles": "viewer"})
        assert matches({}, {"roles": None})

    def test_logical_operators(self) -> None:
        doc = {"a": 1, "b": "x"}
        assert matches(doc, {"$or": [{"a": 2}, {"b": "x"}]})
        assert not matches(doc, {"$and": [{"a": 1}, {"b": "y"}]})
        assert matches(doc, {"$nor": [{"a": 2}]})

    def test_empty_selector_matches_everything(self) -> None:
        assert matches({"anything": 1}, None)
        assert matches({"anything": 1}, {})

    def test_unsupported_operator_raises(self) -> None:
        with pytest.raises(ValueError):
            matches({"a": 1}, {"a": {"$regex": "x"}})
        with pytest.raises(ValueError):
            matches({"a": 1}, {"$where": "true"})
