"""
WorkTrack - Evidence Collections & Repeatable Sub-Record Lists

Both are immutable values: every operation returns a new instance, so the
reducer can swap them into a new FormState atomically.

Index policy:
- remove/update with an index outside [0, len) raises IndexOutOfRange
- removing the sole row of a list whose floor is >= 1 is rejected
  (the same list is returned, row count unchanged)
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from worktrack.core.errors import IndexOutOfRange
from worktrack.forms.rules import validate_row
from worktrack.forms.schema import FieldSpec
from worktrack.models.evidence import CapturedEvidence


class EvidenceCollection(BaseModel):
    """Ordered photos attached to one logical form field."""
    model_config = ConfigDict(frozen=True)

    field: str
    items: tuple[CapturedEvidence, ...] = ()
    max_items: Optional[int] = None

    def __len__(self) -> int:
        return len(self.items)

    def append(self, evidence: CapturedEvidence) -> "EvidenceCollection":
        """
        Add to the end. Duplicate images are allowed; ids differ.

        A single-photo field keeps only the newest capture.
        """
        items = self.items + (evidence,)
        if self.max_items is not None and len(items) > self.max_items:
            items = items[-self.max_items:]
        return self.model_copy(update={"items": items})

    def remove_at(self, index: int) -> "EvidenceCollection":
        if not 0 <= index < len(self.items):
            raise IndexOutOfRange(self.field, index, len(self.items))
        items = self.items[:index] + self.items[index + 1:]
        return self.model_copy(update={"items": items})

    def validate_required(self, required: bool, min_items: int = 1) -> bool:
        return not required or len(self.items) >= max(min_items, 1)

    def to_document(self) -> list[dict]:
        return [item.to_document() for item in self.items]


class SubRecordList(BaseModel):
    """Dynamically sized list of homogeneous rows (e.g. one per fiber test)."""
    model_config = ConfigDict(frozen=True)

    field: str
    rows: tuple[dict[str, Any], ...] = ()
    min_rows: int = 0

    def __len__(self) -> int:
        return len(self.rows)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.rows):
            raise IndexOutOfRange(self.field, index, len(self.rows))

    def add_row(self, defaults: Optional[Mapping[str, Any]] = None) -> "SubRecordList":
        return self.model_copy(update={"rows": self.rows + (dict(defaults or {}),)})

    def remove_row(self, index: int) -> "SubRecordList":
        self._check_index(index)
        if len(self.rows) <= self.min_rows:
            return self
        rows = self.rows[:index] + self.rows[index + 1:]
        return self.model_copy(update={"rows": rows})

    def update_row(self, index: int, patch: Mapping[str, Any]) -> "SubRecordList":
        self._check_index(index)
        merged = {**self.rows[index], **patch}
        rows = self.rows[:index] + (merged,) + self.rows[index + 1:]
        return self.model_copy(update={"rows": rows})

    @property
    def meets_floor(self) -> bool:
        return len(self.rows) >= self.min_rows

    def validate_all(self, row_fields: tuple[FieldSpec, ...]) -> tuple[bool, list[dict[str, list[str]]]]:
        """
        Validate every row independently.

        Returns (aggregate validity, per-row error maps in row order).
        """
        row_errors = [validate_row(row_fields, row) for row in self.rows]
        return self.meets_floor and not any(row_errors), row_errors
