"""
WorkTrack - Error Taxonomy

DeviceUnavailable / DeviceBusy / PositionUnavailable never cross the capture
session boundary as exceptions; the session wraps them in Err results.
ValidationFailed is reported, not thrown, by the submission pipeline.
PersistenceFailed is the only class that represents a genuine external fault.
"""

from typing import TYPE_CHECKING, Literal, Optional

if TYPE_CHECKING:
    from worktrack.forms.validation import ValidationReport


class WorkTrackError(Exception):
    """Base class for all domain errors."""
    pass


# =============================================================================
# CAPTURE
# =============================================================================

class DeviceUnavailable(WorkTrackError):
    """Imaging device could not be acquired (permission denied or absent)."""
    pass


class DeviceBusy(WorkTrackError):
    """Another capture session already holds the imaging device."""

    def __init__(self, device_id: str, holder: Optional[str] = None) -> None:
        self.device_id = device_id
        self.holder = holder
        super().__init__(f"Device {device_id} is held by capture session {holder}")


class PositionUnavailable(WorkTrackError):
    """Positioning failed, was denied or timed out."""
    pass


class CaptureCancelled(WorkTrackError):
    """The capture session was cancelled before evidence was produced."""
    pass


# =============================================================================
# FORMS
# =============================================================================

class SchemaDefinitionError(WorkTrackError):
    """Raised when an activity schema document is malformed."""
    pass


class UnknownActivity(WorkTrackError):
    """Raised when an activity id is not in the schema registry."""
    pass


class UnknownField(WorkTrackError):
    """Raised when an action names a field the schema does not declare."""
    pass


class InvalidValue(WorkTrackError):
    """Raised when a gate is given something that is not yes or no."""
    pass


class IndexOutOfRange(WorkTrackError, IndexError):
    """Raised when removing or updating an entry that does not exist."""

    def __init__(self, field: str, index: int, length: int) -> None:
        self.field = field
        self.index = index
        self.length = length
        super().__init__(f"Index {index} out of range for {field} (length {length})")


class ValidationFailed(WorkTrackError):
    """One or more fields failed schema or required-ness checks."""

    def __init__(self, report: "ValidationReport") -> None:
        self.report = report
        super().__init__(f"Validation failed for: {', '.join(sorted(report.errors))}")


# =============================================================================
# SESSIONS / PERSISTENCE
# =============================================================================

class SessionNotFound(WorkTrackError):
    """Raised when a form session id is unknown or already closed."""
    pass


class SubmissionInFlight(WorkTrackError):
    """A submission for this form is outstanding; it cannot be cancelled."""
    pass


class PersistenceFailed(WorkTrackError):
    """Storage collaborator rejected or could not reach the write."""

    def __init__(
        self,
        message: str,
        kind: Literal["transient", "unknown"] = "unknown",
    ) -> None:
        self.kind = kind
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind == "transient"
