"""Admin dashboard router: every submitted record, filters, CSV export."""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from worktrack.core.config import settings
from worktrack.core.firebase_auth import FirebaseUser, require_role
from worktrack.dependencies import get_records_service
from worktrack.services.records import RecordRow, RecordsService, RecordSummary, export_csv

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_role(settings.ADMIN_ROLE)


@router.get("/records", response_model=list[RecordRow], response_model_by_alias=True)
async def list_records(
    activity: Optional[str] = Query(default=None, description="Activity id, e.g. preventive"),
    on_date: Optional[date] = Query(default=None, alias="date"),
    record_status: Optional[str] = Query(default=None, alias="status"),
    service: RecordsService = Depends(get_records_service),
    admin: FirebaseUser = Depends(require_admin),
):
    """All records across activity collections, newest first."""
    return await service.list_records(activity=activity, on_date=on_date, status=record_status)


@router.get("/summary", response_model=RecordSummary, response_model_by_alias=True)
async def records_summary(
    service: RecordsService = Depends(get_records_service),
    admin: FirebaseUser = Depends(require_admin),
):
    """Total / pending / in-progress / completed counts."""
    return await service.summary()


@router.get("/records/export.csv", response_class=Response)
async def export_records(
    activity: Optional[str] = Query(default=None),
    on_date: Optional[date] = Query(default=None, alias="date"),
    record_status: Optional[str] = Query(default=None, alias="status"),
    service: RecordsService = Depends(get_records_service),
    admin: FirebaseUser = Depends(require_admin),
):
    """The filtered record list as CSV. Photos are never exported."""
    rows = await service.list_records(activity=activity, on_date=on_date, status=record_status)
    filename = f"maintenance-records-{datetime.now(timezone.utc).date().isoformat()}.csv"
    return Response(
        content=export_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
