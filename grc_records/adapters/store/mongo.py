"""MongoDB document store backed by pymongo."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

from grc_records.adapters.store.base import AbstractDocumentStore, Document, Selector
from grc_records.core.config import MongoSettings
from grc_records.core.errors import DocumentWriteError, StoreUnavailableError

logger = logging.getLogger(__name__)


def _unavailable(exc: BaseException) -> StoreUnavailableError:
    return StoreUnavailableError(
        code="store_unavailable",
        message=f"Document store unreachable: {type(exc).__name__}",
        details={"hint": "Check MONGODB_URI and that the server is running"},
    )


class MongoDocumentStore(AbstractDocumentStore):
    """Adapter translating driver errors into fatal vs per-document failures.

    ``ConnectionFailure`` (including server selection timeouts and
    ``AutoReconnect``) means no further progress is possible and surfaces as
    ``StoreUnavailableError``. Any other driver error on a write is specific
    to that document and surfaces as ``DocumentWriteError``.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    @classmethod
    def connect(cls, mongo: MongoSettings) -> "MongoDocumentStore":
        """Open a client and fail fast if the server cannot be reached."""

        client: MongoClient = MongoClient(
            mongo.uri,
            serverSelectionTimeoutMS=mongo.server_selection_timeout_ms,
        )
        try:
            client.admin.command("ping")
        except PyMongoError as exc:
            client.close()
            raise _unavailable(exc) from exc

        logger.info("store.connected", extra={"database": mongo.database})
        return cls(client[mongo.database])

    def close(self) -> None:
        self._db.client.close()

    def find(self, collection: str, selector: Selector | None = None) -> list[Document]:
        try:
            return list(self._db[collection].find(dict(selector or {})))
        except ConnectionFailure as exc:
            raise _unavailable(exc) from exc

    def update_one(
        self,
        collection: str,
        document_id: Any,
        *,
        set_fields: Mapping[str, Any],
        unset_fields: Iterable[str] = (),
    ) -> bool:
        update: dict[str, Any] = {}
        if set_fields:
            update["$set"] = dict(set_fields)
        unset = {field: "" for field in unset_fields}
        if unset:
            update["$unset"] = unset
        if not update:
            return self.count_documents(collection, {"_id": document_id}) > 0

        try:
            result = self._db[collection].update_one({"_id": document_id}, update)
        except ConnectionFailure as exc:
            raise _unavailable(exc) from exc
        except PyMongoError as exc:
            raise DocumentWriteError(
                code="document_write_failed",
                message=str(exc),
                details={"collection": collection, "document_id": str(document_id)},
            ) from exc
        return result.matched_count > 0

    def count_documents(self, collection: str, selector: Selector | None = None) -> int:
        try:
            return self._db[collection].count_documents(dict(selector or {}))
        except ConnectionFailure as exc:
            raise _unavailable(exc) from exc
