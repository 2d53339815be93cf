"""
WorkTrack - Services
Form sessions, the submission pipeline and admin record aggregation.
"""

from worktrack.services.form_sessions import FormSession, FormSessionManager
from worktrack.services.records import RecordRow, RecordsService, RecordSummary, export_csv
from worktrack.services.submission import SubmissionOutcome, SubmissionPipeline

__all__ = [
    "FormSession",
    "FormSessionManager",
    "RecordRow",
    "RecordsService",
    "RecordSummary",
    "export_csv",
    "SubmissionOutcome",
    "SubmissionPipeline",
]
