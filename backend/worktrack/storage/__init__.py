from worktrack.storage.base import (
    SERVER_TIMESTAMP,
    DocumentStore,
    QueryFilter,
    StoredDocument,
)
from worktrack.storage.memory import InMemoryDocumentStore

__all__ = [
    "SERVER_TIMESTAMP",
    "DocumentStore",
    "QueryFilter",
    "StoredDocument",
    "InMemoryDocumentStore",
]
