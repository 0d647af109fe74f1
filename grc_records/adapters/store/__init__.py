"""Document store adapters.

The MongoDB adapter is used against live data; the in-memory adapter shares
its query semantics and backs tests and offline dry runs.
"""

from grc_records.adapters.store.base import AbstractDocumentStore, Document, Selector
from grc_records.adapters.store.in_memory import InMemoryDocumentStore

__all__ = [
    "AbstractDocumentStore",
    "Document",
    "InMemoryDocumentStore",
    "Selector",
]
