"""In-memory document store for local runs and tests."""

import copy
import logging
import operator
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from worktrack.storage.base import SERVER_TIMESTAMP, DocumentStore, QueryFilter, StoredDocument

logger = logging.getLogger(__name__)

_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda value, options: value in options,
}


def _resolve_timestamps(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve_timestamps(v, now) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_timestamps(v, now) for v in value]
    return copy.deepcopy(value)


def _matches(data: dict[str, Any], query_filter: QueryFilter) -> bool:
    if query_filter.field not in data:
        return False
    try:
        return _OPS[query_filter.op](data[query_filter.field], query_filter.value)
    except TypeError:
        return False


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store with Firestore-like semantics.

    Server timestamps resolve to the write time in UTC. Documents are
    copied on the way in and out so callers never share state with the store.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def create_document(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self._collections.setdefault(collection, {})[doc_id] = _resolve_timestamps(data, self._clock())
        logger.debug(f"Created {collection}/{doc_id}")
        return doc_id

    async def set_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[doc_id] = _resolve_timestamps(data, self._clock())

    async def get_document(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        data = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    async def query_documents(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        docs = [
            StoredDocument(id=doc_id, collection=collection, data=copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection, {}).items()
            if all(_matches(data, f) for f in filters)
        ]
        if order_by is not None:
            # Firestore drops documents missing the ordering field
            docs = [d for d in docs if order_by in d.data]
            docs.sort(key=lambda d: d.data[order_by], reverse=descending)
        if limit is not None:
            docs = docs[:limit]
        return docs

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))
