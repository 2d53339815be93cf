"""Schema-driven form engine: registry, state, actions, reducer, validation."""

from worktrack.forms.actions import ClientAction, FormAction
from worktrack.forms.collections import EvidenceCollection, SubRecordList
from worktrack.forms.payload import build_fields, build_record
from worktrack.forms.reducer import reduce
from worktrack.forms.schema import FieldKind, FieldSpec, FormSchema, SchemaRegistry, get_registry
from worktrack.forms.state import FormState, initial_state
from worktrack.forms.validation import ValidationReport, validate_form

__all__ = [
    "ClientAction",
    "FormAction",
    "EvidenceCollection",
    "SubRecordList",
    "build_fields",
    "build_record",
    "reduce",
    "FieldKind",
    "FieldSpec",
    "FormSchema",
    "SchemaRegistry",
    "get_registry",
    "FormState",
    "initial_state",
    "ValidationReport",
    "validate_form",
]
