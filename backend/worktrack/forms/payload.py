"""Composes the persisted MaintenanceRecord from a form state."""

from typing import Any

from worktrack.forms.schema import FieldKind, FormSchema
from worktrack.forms.state import FormState
from worktrack.models.record import MaintenanceRecord, SubmittedBy


def build_fields(schema: FormSchema, state: FormState) -> dict[str, Any]:
    """
    Field name -> persisted value, for visible fields only.

    A field whose governing gate is closed is skipped even if it still holds
    data from an earlier open period.
    """
    fields: dict[str, Any] = {}
    for name, spec in schema.fields.items():
        if not schema.is_visible(name, state.values):
            continue

        if spec.kind in (FieldKind.SCALAR, FieldKind.GATE):
            fields[name] = state.values.get(name, spec.default)
        elif spec.kind == FieldKind.EVIDENCE:
            fields[name] = state.evidence[name].to_document()
        elif spec.kind == FieldKind.SINGLE_EVIDENCE:
            items = state.evidence[name].to_document()
            fields[name] = items[0] if items else None
        else:
            fields[name] = [
                {row_spec.name: row.get(row_spec.name, row_spec.default) for row_spec in spec.row_fields}
                for row in state.rows[name].rows
            ]
    return fields


def build_record(
    schema: FormSchema,
    state: FormState,
    submitted_by: SubmittedBy,
    submitted_at: Any,
) -> MaintenanceRecord:
    return MaintenanceRecord(
        activity_type=schema.activity_type,
        submitted_by=submitted_by,
        submitted_at=submitted_at,
        fields=build_fields(schema, state),
    )
