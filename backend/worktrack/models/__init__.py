from worktrack.models.evidence import CapturedEvidence, GeoLocation, new_evidence_id
from worktrack.models.record import MaintenanceRecord, RecordStatus, SubmittedBy

__all__ = [
    "CapturedEvidence",
    "GeoLocation",
    "new_evidence_id",
    "MaintenanceRecord",
    "RecordStatus",
    "SubmittedBy",
]
