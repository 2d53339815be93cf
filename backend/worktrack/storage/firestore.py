"""Cloud Firestore document store (async client)."""

import logging
from typing import Any, Optional, Sequence

from firebase_admin import firestore_async
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from worktrack.core.errors import PersistenceFailed
from worktrack.core.firebase import init_firebase
from worktrack.storage.base import SERVER_TIMESTAMP, DocumentStore, QueryFilter, StoredDocument

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.TooManyRequests,
    google_exceptions.InternalServerError,
)


def _to_firestore(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    if isinstance(value, dict):
        return {k: _to_firestore(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_firestore(v) for v in value]
    return value


def _classify(action: str, error: google_exceptions.GoogleAPICallError) -> PersistenceFailed:
    kind = "transient" if isinstance(error, TRANSIENT_ERRORS) else "unknown"
    logger.error(f"Firestore {action} failed ({kind}): {error}")
    return PersistenceFailed(f"Firestore {action} failed: {error.message}", kind=kind)


class FirestoreDocumentStore(DocumentStore):

    def __init__(self, client: Optional[Any] = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            if not init_firebase():
                raise PersistenceFailed("Firebase is not configured", kind="unknown")
            self._client = firestore_async.client()
        return self._client

    async def create_document(self, collection: str, data: dict[str, Any]) -> str:
        try:
            _, ref = await self.client.collection(collection).add(_to_firestore(data))
        except google_exceptions.GoogleAPICallError as e:
            raise _classify(f"write to {collection}", e)
        return ref.id

    async def set_document(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        try:
            await self.client.collection(collection).document(doc_id).set(_to_firestore(data))
        except google_exceptions.GoogleAPICallError as e:
            raise _classify(f"write to {collection}/{doc_id}", e)

    async def get_document(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        try:
            snapshot = await self.client.collection(collection).document(doc_id).get()
        except google_exceptions.GoogleAPICallError as e:
            raise _classify(f"read of {collection}/{doc_id}", e)
        return snapshot.to_dict() if snapshot.exists else None

    async def query_documents(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        query = self.client.collection(collection)
        for f in filters:
            query = query.where(filter=FieldFilter(f.field, f.op, f.value))
        if order_by is not None:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)

        docs: list[StoredDocument] = []
        try:
            async for snapshot in query.stream():
                docs.append(StoredDocument(id=snapshot.id, collection=collection, data=snapshot.to_dict()))
        except google_exceptions.GoogleAPICallError as e:
            raise _classify(f"query of {collection}", e)
        return docs
