"""In-memory document store.

Mirrors the MongoDB adapter closely enough for migrations to be exercised
without a server: documents are deep-copied in and out, selectors follow
MongoDB matching rules (see ``query.py``), writes are targeted field
updates.

Notes:
- Per-process only, nothing is persisted.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Iterable, Mapping

from bson import ObjectId

from grc_records.adapters.store.base import AbstractDocumentStore, Document, Selector
from grc_records.adapters.store.query import matches


class InMemoryDocumentStore(AbstractDocumentStore):
    """Dict-of-lists document store keyed by collection name."""

    def __init__(self, collections: Mapping[str, Iterable[Mapping[str, Any]]] | None = None) -> None:
        self._lock = threading.RLock()
        self._collections: dict[str, list[Document]] = {}
        for name, documents in (collections or {}).items():
            self.insert_many(name, documents)

    def insert_many(self, collection: str, documents: Iterable[Mapping[str, Any]]) -> list[Any]:
        """Insert copies of ``documents``, assigning an ObjectId when ``_id`` is absent."""

        inserted: list[Any] = []
        with self._lock:
            bucket = self._collections.setdefault(collection, [])
            for document in documents:
                stored = copy.deepcopy(dict(document))
                stored.setdefault("_id", ObjectId())
                bucket.append(stored)
                inserted.append(stored["_id"])
        return inserted

    def get(self, collection: str, document_id: Any) -> Document | None:
        with self._lock:
            stored = self._find_by_id_locked(collection, document_id)
            return copy.deepcopy(stored) if stored is not None else None

    def find(self, collection: str, selector: Selector | None = None) -> list[Document]:
        with self._lock:
            return [
                copy.deepcopy(document)
                for document in self._collections.get(collection, [])
                if matches(document, selector)
            ]

    def update_one(
        self,
        collection: str,
        document_id: Any,
        *,
        set_fields: Mapping[str, Any],
        unset_fields: Iterable[str] = (),
    ) -> bool:
        with self._lock:
            stored = self._find_by_id_locked(collection, document_id)
            if stored is None:
                return False
            for key, value in set_fields.items():
                stored[key] = copy.deepcopy(value)
            for key in unset_fields:
                stored.pop(key, None)
            return True

    def count_documents(self, collection: str, selector: Selector | None = None) -> int:
        with self._lock:
            return sum(1 for d in self._collections.get(collection, []) if matches(d, selector))

    def delete_one(self, collection: str, document_id: Any) -> bool:
        with self._lock:
            bucket = self._collections.get(collection, [])
            for index, document in enumerate(bucket):
                if document.get("_id") == document_id:
                    del bucket[index]
                    return True
            return False

    def _find_by_id_locked(self, collection: str, document_id: Any) -> Document | None:
        for document in self._collections.get(collection, []):
            if document.get("_id") == document_id:
                return document
        return None
