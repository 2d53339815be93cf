from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RecordStatus(str, Enum):
    """Lifecycle tag of a submitted record. Transitions belong to admins."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SubmittedBy(BaseModel):
    """Identity reference stamped on every record."""
    model_config = ConfigDict(frozen=True)

    uid: str
    email: Optional[str] = None


class MaintenanceRecord(BaseModel):
    """
    Final composed submission.

    ``fields`` holds only the fields visible at submit time, keyed by their
    persisted names. ``submitted_at`` is normally the store's server
    timestamp sentinel, resolved by the storage collaborator.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    activity_type: str
    submitted_by: SubmittedBy
    submitted_at: Any
    status: RecordStatus = RecordStatus.PENDING
    fields: dict[str, Any] = Field(default_factory=dict)

    def to_document(self) -> dict[str, Any]:
        """Flatten into the persisted document shape."""
        document = dict(self.fields)
        document.update(
            {
                "activityType": self.activity_type,
                "submittedBy": self.submitted_by.model_dump(),
                "submittedAt": self.submitted_at,
                "status": self.status.value,
            }
        )
        return document
