from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from worktrack.forms.collections import EvidenceCollection, SubRecordList
from worktrack.forms.schema import FieldKind, FormSchema
from worktrack.forms.validation import validate_form


class FormState(BaseModel):
    """
    Complete interactive state of one form session.

    Frozen: the reducer produces a new instance per action, so a mutation is
    either fully visible (collection and aggregate validity together) or not
    at all.
    """
    model_config = ConfigDict(frozen=True)

    activity_id: str
    values: dict[str, Any] = Field(default_factory=dict)
    evidence: dict[str, EvidenceCollection] = Field(default_factory=dict)
    rows: dict[str, SubRecordList] = Field(default_factory=dict)

    # Visible validation feedback (touched, visible fields only)
    errors: dict[str, tuple[str, ...]] = Field(default_factory=dict)
    row_errors: dict[str, tuple[dict[str, list[str]], ...]] = Field(default_factory=dict)
    touched: frozenset[str] = frozenset()

    # Aggregate signal, recomputed on every action
    submittable: bool = False

    # Submission lifecycle
    submitting: bool = False
    last_outcome: Optional[str] = None
    last_document_id: Optional[str] = None
    last_error: Optional[str] = None


def initial_state(schema: FormSchema) -> FormState:
    """Empty state: defaults, empty collections, lists at their row floor."""
    values: dict[str, Any] = {}
    evidence: dict[str, EvidenceCollection] = {}
    rows: dict[str, SubRecordList] = {}

    for spec in schema.fields.values():
        if spec.kind in (FieldKind.SCALAR, FieldKind.GATE):
            values[spec.name] = spec.default
        elif spec.is_evidence:
            evidence[spec.name] = EvidenceCollection(field=spec.name, max_items=spec.max_items)
        else:
            rows[spec.name] = SubRecordList(
                field=spec.name,
                rows=tuple(dict(spec.default_row) for _ in range(spec.min_rows)),
                min_rows=spec.min_rows,
            )

    state = FormState(activity_id=schema.activity_id, values=values, evidence=evidence, rows=rows)

    return state.model_copy(update={"submittable": validate_form(schema, state).ok})
