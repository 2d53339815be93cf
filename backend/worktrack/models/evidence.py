"""Captured evidence - one timestamped, optionally geotagged still photo."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from worktrack.core.types import Latitude, Longitude


def new_evidence_id() -> str:
    return f"photo_{uuid.uuid4().hex}"


class GeoLocation(BaseModel):
    """A WGS84 position fix."""
    model_config = ConfigDict(frozen=True)

    latitude: Latitude
    longitude: Longitude


class CapturedEvidence(BaseModel):
    """
    One unit of proof-of-work.

    Immutable once created. Serialized with camelCase keys
    (evidenceId, capturedAt, location, imageData), which is the persisted
    record contract read back by the admin dashboard.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    evidence_id: str = Field(default_factory=new_evidence_id)
    captured_at: datetime
    location: Optional[GeoLocation] = None
    image_data: str  # data:image/jpeg;base64,...

    @property
    def geotagged(self) -> bool:
        return self.location is not None

    def to_document(self) -> dict:
        """Serialize for the document store; no location key when untagged."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
