"""Document store interface.

Migrations and verification passes depend on this abstraction, not on the
MongoDB driver, so they can run against the in-memory store in tests and
dry runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping

Document = dict[str, Any]
Selector = Mapping[str, Any]


class AbstractDocumentStore(ABC):
    """Minimal collection access used by the schema migrator."""

    @abstractmethod
    def find(self, collection: str, selector: Selector | None = None) -> list[Document]:
        """Return every document matching ``selector`` (all when None).

        The result is fully materialized so callers can update documents while
        iterating without disturbing the scan.

        Raises:
            StoreUnavailableError: The store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def update_one(
        self,
        collection: str,
        document_id: Any,
        *,
        set_fields: Mapping[str, Any],
        unset_fields: Iterable[str] = (),
    ) -> bool:
        """Apply a targeted field update to one document by ``_id``.

        Returns:
            True if a document with that id existed.

        Raises:
            DocumentWriteError: The store rejected this write.
            StoreUnavailableError: The store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def count_documents(self, collection: str, selector: Selector | None = None) -> int:
        raise NotImplementedError
