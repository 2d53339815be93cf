"""
WorkTrack - Form Reducer

Pure transition function: (schema, state, action) -> state.

Rules:
- Every mutating action re-validates the owning field and recomputes the
  aggregate submittable signal in the state it returns.
- Errors are shown only for touched, visible fields. Closing a gate drops
  the dependents it hides (transitively) from the touched set, so their
  errors are cleared; their values stay in memory but are never submitted while hidden.
- Opening a gate pre-populates nothing.
- Mutations are refused while a submission is in flight.
"""

from typing import Any, Callable

from worktrack.core.errors import InvalidValue, SubmissionInFlight, UnknownField
from worktrack.forms.actions import (
    AddRow,
    AppendEvidence,
    RemoveEvidence,
    RemoveRow,
    Reset,
    SetField,
    SetGate,
    SubmitFailed,
    SubmitStarted,
    SubmitSucceeded,
    UpdateRow,
    Validate,
)
from worktrack.forms.rules import coerce_value, parse_bool
from worktrack.forms.schema import FieldKind, FieldSpec, FormSchema
from worktrack.forms.state import FormState, initial_state
from worktrack.forms.validation import validate_field, validate_form

_LIFECYCLE = {"submit_started", "submit_succeeded", "submit_failed"}


def reduce(schema: FormSchema, state: FormState, action: Any) -> FormState:
    """Apply one action. Raises UnknownField / IndexOutOfRange / SubmissionInFlight."""
    if state.submitting and action.type not in _LIFECYCLE:
        raise SubmissionInFlight(f"{schema.activity_id}: submission in progress")
    handler = _HANDLERS[action.type]
    return handler(schema, state, action)


def refresh(schema: FormSchema, state: FormState) -> FormState:
    """Recompute visible errors and the aggregate submittable flag."""
    errors: dict[str, tuple[str, ...]] = {}
    row_errors: dict[str, tuple[dict[str, list[str]], ...]] = {}
    for name in schema.fields:
        if name not in state.touched or not schema.is_visible(name, state.values):
            continue
        messages, per_row = validate_field(schema, state, name)
        if messages:
            errors[name] = tuple(messages)
        if per_row and any(per_row):
            row_errors[name] = tuple(per_row)
    return state.model_copy(
        update={
            "errors": errors,
            "row_errors": row_errors,
            "submittable": validate_form(schema, state).ok,
        }
    )


def _expect(schema: FormSchema, name: str, *kinds: FieldKind) -> FieldSpec:
    spec = schema.field(name)
    if spec.kind not in kinds:
        raise UnknownField(f"{name} is a {spec.kind.value} field")
    return spec


def _touch(state: FormState, name: str, **update: Any) -> FormState:
    update["touched"] = state.touched | {name}
    return state.model_copy(update=update)


# =============================================================================
# HANDLERS
# =============================================================================

def _set_field(schema: FormSchema, state: FormState, action: SetField) -> FormState:
    spec = schema.field(action.field)
    if spec.kind == FieldKind.GATE:
        value = parse_bool(action.value)
        if value is None:
            raise InvalidValue(f"{spec.label} must be yes or no, got {action.value!r}")
        return _set_gate(schema, state, SetGate(field=action.field, value=value))
    _expect(schema, action.field, FieldKind.SCALAR)
    values = {**state.values, action.field: coerce_value(spec, action.value)}
    return refresh(schema, _touch(state, action.field, values=values))


def _set_gate(schema: FormSchema, state: FormState, action: SetGate) -> FormState:
    _expect(schema, action.field, FieldKind.GATE)
    values = {**state.values, action.field: action.value}
    touched = state.touched | {action.field}
    if not schema.gate_open(action.field, values):
        hidden = {
            name for name in schema.descendants(action.field)
            if not schema.is_visible(name, values)
        }
        touched = touched - hidden
    return refresh(schema, state.model_copy(update={"values": values, "touched": touched}))


def _append_evidence(schema: FormSchema, state: FormState, action: AppendEvidence) -> FormState:
    _expect(schema, action.field, FieldKind.EVIDENCE, FieldKind.SINGLE_EVIDENCE)
    collection = state.evidence[action.field].append(action.evidence)
    evidence = {**state.evidence, action.field: collection}
    return refresh(schema, _touch(state, action.field, evidence=evidence))


def _remove_evidence(schema: FormSchema, state: FormState, action: RemoveEvidence) -> FormState:
    _expect(schema, action.field, FieldKind.EVIDENCE, FieldKind.SINGLE_EVIDENCE)
    collection = state.evidence[action.field].remove_at(action.index)
    evidence = {**state.evidence, action.field: collection}
    return refresh(schema, _touch(state, action.field, evidence=evidence))


def _add_row(schema: FormSchema, state: FormState, action: AddRow) -> FormState:
    spec = _expect(schema, action.field, FieldKind.REPEATABLE)
    defaults = action.defaults if action.defaults is not None else spec.default_row
    row = {}
    for key, value in defaults.items():
        row[key] = coerce_value(spec.row_field(key), value)
    rows = {**state.rows, action.field: state.rows[action.field].add_row(row)}
    return refresh(schema, _touch(state, action.field, rows=rows))


def _remove_row(schema: FormSchema, state: FormState, action: RemoveRow) -> FormState:
    _expect(schema, action.field, FieldKind.REPEATABLE)
    current = state.rows[action.field]
    updated = current.remove_row(action.index)
    if updated is current:
        # row floor: removal rejected
        return state
    rows = {**state.rows, action.field: updated}
    return refresh(schema, _touch(state, action.field, rows=rows))


def _update_row(schema: FormSchema, state: FormState, action: UpdateRow) -> FormState:
    spec = _expect(schema, action.field, FieldKind.REPEATABLE)
    patch = {key: coerce_value(spec.row_field(key), value) for key, value in action.patch.items()}
    rows = {**state.rows, action.field: state.rows[action.field].update_row(action.index, patch)}
    return refresh(schema, _touch(state, action.field, rows=rows))


def _validate(schema: FormSchema, state: FormState, action: Validate) -> FormState:
    visible = {name for name in schema.fields if schema.is_visible(name, state.values)}
    return refresh(schema, state.model_copy(update={"touched": state.touched | visible}))


def _submit_started(schema: FormSchema, state: FormState, action: SubmitStarted) -> FormState:
    return state.model_copy(
        update={"submitting": True, "last_outcome": None, "last_error": None}
    )


def _submit_succeeded(schema: FormSchema, state: FormState, action: SubmitSucceeded) -> FormState:
    fresh = initial_state(schema)
    return fresh.model_copy(
        update={"last_outcome": "succeeded", "last_document_id": action.document_id}
    )


def _submit_failed(schema: FormSchema, state: FormState, action: SubmitFailed) -> FormState:
    state = state.model_copy(
        update={
            "submitting": False,
            "last_outcome": "rejected" if action.rejected else "failed",
            "last_error": action.reason,
        }
    )
    if action.rejected:
        return _validate(schema, state, Validate())
    return state


def _reset(schema: FormSchema, state: FormState, action: Reset) -> FormState:
    return initial_state(schema)


_HANDLERS: dict[str, Callable[[FormSchema, FormState, Any], FormState]] = {
    "set_field": _set_field,
    "set_gate": _set_gate,
    "append_evidence": _append_evidence,
    "remove_evidence": _remove_evidence,
    "add_row": _add_row,
    "remove_row": _remove_row,
    "update_row": _update_row,
    "validate": _validate,
    "submit_started": _submit_started,
    "submit_succeeded": _submit_succeeded,
    "submit_failed": _submit_failed,
    "reset": _reset,
}
