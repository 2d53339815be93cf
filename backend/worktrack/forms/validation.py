"""Field- and form-level validation over a FormState."""

from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field

from worktrack.forms.rules import validate_scalar
from worktrack.forms.schema import FieldKind, FormSchema

if TYPE_CHECKING:
    from worktrack.forms.state import FormState


class ValidationReport(BaseModel):
    """Every failing field at once, for a single user-facing report."""
    errors: dict[str, list[str]] = Field(default_factory=dict)
    row_errors: dict[str, list[dict[str, list[str]]]] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_field(
    schema: FormSchema,
    state: "FormState",
    name: str,
) -> tuple[list[str], Optional[list[dict[str, list[str]]]]]:
    """
    Validate one field regardless of visibility.

    Returns (field messages, per-row errors for repeatable fields else None).
    """
    spec = schema.field(name)

    if spec.kind == FieldKind.GATE:
        value = state.values.get(name, spec.default)
        return ([] if isinstance(value, bool) else [f"{spec.label} must be yes or no"]), None

    if spec.kind == FieldKind.SCALAR:
        return validate_scalar(spec, state.values.get(name, spec.default)), None

    if spec.is_evidence:
        collection = state.evidence[name]
        if collection.validate_required(spec.required, spec.min_items):
            return [], None
        if spec.min_items > 1:
            return [f"At least {spec.min_items} {spec.label.lower()} are required"], None
        return [f"At least one {spec.label.lower()} is required"], None

    rows = state.rows[name]
    valid, row_errors = rows.validate_all(spec.row_fields)
    messages: list[str] = []
    if not rows.meets_floor:
        messages.append(f"At least {rows.min_rows} {spec.label.lower()} row(s) required")
    if not valid and any(row_errors):
        messages.append(f"{spec.label} has invalid rows")
    return messages, row_errors


def validate_form(schema: FormSchema, state: "FormState") -> ValidationReport:
    """Validate every visible field; hidden fields never block submission."""
    report = ValidationReport()
    for name in schema.fields:
        if not schema.is_visible(name, state.values):
            continue
        messages, row_errors = validate_field(schema, state, name)
        if messages:
            report.errors[name] = messages
        if row_errors and any(row_errors):
            report.row_errors[name] = row_errors
    return report
