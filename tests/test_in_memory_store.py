"""Unit tests for the in-memory document store."""

from grc_records.adapters.store.in_memory import InMemoryDocumentStore


def test_insert_assigns_ids_and_find_returns_copies(store: InMemoryDocumentStore) -> None:
    [doc_id] = store.insert_many("risks", [{"riskId": "R-1", "tags": ["a"]}])

    found = store.find("risks")
    found[0]["tags"].append("mutated")

    assert found[0]["_id"] == doc_id
    assert store.get("risks", doc_id)["tags"] == ["a"]


def test_update_one_sets_and_unsets_only_named_fields(store: InMemoryDocumentStore) -> None:
    [doc_id] = store.insert_many("users", [{"email": "a@example.com", "role": "admin", "name": "A"}])

    found = store.update_one("users", doc_id, set_fields={"roles": ["admin"]}, unset_fields=["role"])

    assert found is True
    assert store.get("users", doc_id) == {
        "_id": doc_id,
        "email": "a@example.com",
        "name": "A",
        "roles": ["admin"],
    }


def test_update_one_reports_missing_document(store: InMemoryDocumentStore) -> None:
    assert store.update_one("users", "nope", set_fields={"x": 1}) is False


def test_count_and_delete(store: InMemoryDocumentStore) -> None:
    ids = store.insert_many("threats", [{"n": 1}, {"n": 2}, {"n": 2}])

    assert store.count_documents("threats", {"n": 2}) == 2
    assert store.delete_one("threats", ids[1]) is True
    assert store.count_documents("threats") == 2
    assert store.find("unknown-collection") == []
