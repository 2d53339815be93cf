"""
WorkTrack - Document Store Contract

A collection-scoped document store. The submission pipeline only needs
create_document; the admin dashboard reads with query_documents.

SERVER_TIMESTAMP may appear anywhere in a document written through
create_document or set_document; the store replaces it with its own
authoritative write time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal, Optional, Sequence


class _ServerTimestamp:
    _instance: Optional["_ServerTimestamp"] = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

FilterOp = Literal["==", "!=", "<", "<=", ">", ">=", "in"]


@dataclass(frozen=True)
class QueryFilter:
    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class StoredDocument:
    id: str
    collection: str
    data: dict[str, Any]


class DocumentStore(ABC):
    """
    Storage collaborator.

    Implementations raise PersistenceFailed with kind="transient" for
    failures worth retrying (unavailable, deadline, throttling) and
    kind="unknown" otherwise.
    """

    @abstractmethod
    async def create_document(self, collection: str, data: dict[str, Any]) -> str:
        """Write a new document with a store-generated id; returns the id."""
        ...

    @abstractmethod
    async def set_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def get_document(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    async def query_documents(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        ...

    async def close(self) -> None:
        pass
