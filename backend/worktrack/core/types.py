"""
WorkTrack - Canonical Shared Types
==================================

Coordinates:  float degrees, range-checked on the way in.
              Latitude in [-90, 90], longitude in [-180, 180].

Results:      Ok(value) | Err(error) for operations whose failures are
              expected states rather than exceptions (device acquisition,
              positioning). Callers branch on ``result.ok``.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Generic, TypeVar, Union

from pydantic import BeforeValidator, WithJsonSchema


# =============================================================================
# COORDINATES
# =============================================================================

def _validate_degrees(v: Any, limit: float, name: str) -> float:
    if isinstance(v, bool):
        raise ValueError(f"Invalid {name}: {v}")
    try:
        deg = float(v)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {name}: {v!r}")
    if deg != deg or deg < -limit or deg > limit:
        raise ValueError(f"{name.capitalize()} must be within +/-{limit}, got: {deg}")
    return deg


def _validate_latitude(v: Any) -> float:
    return _validate_degrees(v, 90.0, "latitude")


def _validate_longitude(v: Any) -> float:
    return _validate_degrees(v, 180.0, "longitude")


Latitude = Annotated[
    float,
    BeforeValidator(_validate_latitude),
    WithJsonSchema({"type": "number", "minimum": -90, "maximum": 90}),
]

Longitude = Annotated[
    float,
    BeforeValidator(_validate_longitude),
    WithJsonSchema({"type": "number", "minimum": -180, "maximum": 180}),
]


# =============================================================================
# RESULTS
# =============================================================================

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]


__all__ = [
    "Latitude",
    "Longitude",
    "Ok",
    "Err",
    "Result",
]
