"""
WorkTrack - Admin Records

Read side of the persisted record contract: aggregates every activity
collection for the admin dashboard, with filters, summary counts and CSV
export. Image data never leaves this module.

Records are read by `submittedAt` and `submittedBy.email`. Documents written
by the earlier dashboard carry `createdAt` and `userEmail` instead. Ordering by
`submittedAt` leaves those documents out of these listings.
"""

import csv
import io
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from worktrack.forms.schema import SchemaRegistry
from worktrack.models.record import RecordStatus
from worktrack.storage.base import DocumentStore, StoredDocument

logger = logging.getLogger(__name__)

CSV_HEADERS = ["ID", "Activity", "Status", "Date", "User", "GP / Location"]

# First present key wins
GP_LOCATION_KEYS = ("gpName", "gpSpanName", "location", "clusterBaseLocation", "presentLocation")


class RecordRow(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    collection: str
    activity_type: str
    status: str = RecordStatus.PENDING.value
    submitted_at: Optional[datetime] = None
    user: Optional[str] = None
    gp_location: Optional[str] = None


class RecordSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return _as_datetime(datetime.fromisoformat(value))
        except ValueError:
            return None
    return None


def _to_row(doc: StoredDocument, activity_type: str) -> RecordRow:
    data = doc.data
    submitted_by = data.get("submittedBy") or {}
    gp_location = next(
        (str(data[key]) for key in GP_LOCATION_KEYS if data.get(key) not in (None, "")),
        None,
    )
    return RecordRow(
        id=doc.id,
        collection=doc.collection,
        activity_type=data.get("activityType") or activity_type,
        status=data.get("status") or RecordStatus.PENDING.value,
        submitted_at=_as_datetime(data.get("submittedAt")),
        user=submitted_by.get("email") if isinstance(submitted_by, dict) else None,
        gp_location=gp_location,
    )


class RecordsService:

    def __init__(self, store: DocumentStore, registry: SchemaRegistry) -> None:
        self.store = store
        self.registry = registry

    async def list_records(
        self,
        activity: Optional[str] = None,
        on_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[RecordRow]:
        """All records across activity collections, newest first."""
        schemas = [self.registry.get(activity)] if activity else self.registry.all()

        rows: list[RecordRow] = []
        for schema in schemas:
            docs = await self.store.query_documents(
                schema.collection, order_by="submittedAt", descending=True
            )
            rows.extend(_to_row(doc, schema.activity_type) for doc in docs)

        if on_date is not None:
            rows = [r for r in rows if r.submitted_at is not None and r.submitted_at.date() == on_date]
        if status is not None:
            rows = [r for r in rows if r.status == status]

        oldest = datetime.min.replace(tzinfo=timezone.utc)
        rows.sort(key=lambda r: r.submitted_at or oldest, reverse=True)
        logger.debug(f"Listed {len(rows)} records")
        return rows

    async def summary(self) -> RecordSummary:
        rows = await self.list_records()
        return RecordSummary(
            total=len(rows),
            pending=sum(1 for r in rows if r.status == RecordStatus.PENDING.value),
            in_progress=sum(1 for r in rows if r.status == RecordStatus.IN_PROGRESS.value),
            completed=sum(1 for r in rows if r.status == RecordStatus.COMPLETED.value),
        )


def export_csv(rows: list[RecordRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow(
            [
                row.id,
                row.activity_type,
                row.status,
                row.submitted_at.date().isoformat() if row.submitted_at else "N/A",
                row.user or "N/A",
                row.gp_location or "N/A",
            ]
        )
    return buffer.getvalue()
