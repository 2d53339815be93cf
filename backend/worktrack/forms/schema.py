"""
WorkTrack - Activity Schema Registry
Declarative description of every activity form.

This module:
- Loads activities.yaml as the authoritative source of form structure
- Builds the gate -> dependents graph for each form
- Validates the graph on load (unknown dependents, self-gating, cycles)
- Answers visibility questions for the reducer and payload builder

One generic engine serves every activity; no per-form code exists.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from worktrack.core.config import settings
from worktrack.core.errors import SchemaDefinitionError, UnknownActivity, UnknownField

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).with_name("activities.yaml")


class FieldKind(str, Enum):
    """Structural kind of a form field."""
    SCALAR = "scalar"
    GATE = "gate"
    EVIDENCE = "evidence"
    SINGLE_EVIDENCE = "single_evidence"
    REPEATABLE = "repeatable"


class ValueType(str, Enum):
    """Value type of a scalar field."""
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    CHOICE = "choice"
    DATE = "date"
    DATETIME = "datetime"


EVIDENCE_KINDS = (FieldKind.EVIDENCE, FieldKind.SINGLE_EVIDENCE)


@dataclass(frozen=True)
class FieldSpec:
    """Definition of one form field from activities.yaml."""
    name: str
    kind: FieldKind
    label: str
    required: bool = True
    value_type: Optional[ValueType] = None
    default: Any = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    choices: tuple[str, ...] = ()
    # evidence
    min_items: int = 0
    max_items: Optional[int] = None
    # repeatable
    row_fields: tuple["FieldSpec", ...] = ()
    min_rows: int = 0
    default_row: Mapping[str, Any] = field(default_factory=dict)
    # gate
    dependents: tuple[str, ...] = ()
    reveal_when: bool = True

    @property
    def is_gate(self) -> bool:
        return self.kind == FieldKind.GATE

    @property
    def is_evidence(self) -> bool:
        return self.kind in EVIDENCE_KINDS

    def row_field(self, name: str) -> "FieldSpec":
        for spec in self.row_fields:
            if spec.name == name:
                return spec
        raise UnknownField(f"{self.name} rows have no field {name}")

    def describe(self) -> dict[str, Any]:
        """JSON-friendly description for the activity catalog."""
        out: dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
            "label": self.label,
            "required": self.required,
        }
        if self.value_type:
            out["valueType"] = self.value_type.value
        if self.choices:
            out["choices"] = list(self.choices)
        if self.min_value is not None:
            out["min"] = self.min_value
        if self.max_value is not None:
            out["max"] = self.max_value
        if self.is_evidence:
            out["minItems"] = self.min_items
            out["maxItems"] = self.max_items
        if self.kind == FieldKind.REPEATABLE:
            out["minRows"] = self.min_rows
            out["rowFields"] = [spec.describe() for spec in self.row_fields]
        if self.is_gate:
            out["dependents"] = list(self.dependents)
            out["revealWhen"] = self.reveal_when
        if self.default is not None:
            out["default"] = self.default
        return out


@dataclass(frozen=True)
class FormSchema:
    """One activity form: its fields, gate graph and target collection."""
    activity_id: str
    title: str
    description: str
    collection: str
    activity_type: str
    fields: Mapping[str, FieldSpec]
    governors: Mapping[str, tuple[str, ...]]

    def field(self, name: str) -> FieldSpec:
        try:
            return self.fields[name]
        except KeyError:
            raise UnknownField(f"{self.activity_id} has no field {name}") from None

    def gate_open(self, gate: str, values: Mapping[str, Any]) -> bool:
        spec = self.fields[gate]
        return bool(values.get(gate, spec.default)) == spec.reveal_when

    def is_visible(self, name: str, values: Mapping[str, Any]) -> bool:
        """
        A field with no governing gate is always visible. Otherwise it is
        visible when any governing gate is itself visible and open.
        """
        governors = self.governors.get(name)
        if not governors:
            return True
        return any(
            self.gate_open(gate, values) and self.is_visible(gate, values)
            for gate in governors
        )

    def descendants(self, gate: str) -> list[str]:
        """All fields transitively governed by ``gate``, nearest first."""
        seen: list[str] = []
        frontier = list(self.fields[gate].dependents)
        while frontier:
            name = frontier.pop(0)
            if name in seen:
                continue
            seen.append(name)
            frontier.extend(self.fields[name].dependents)
        return seen

    def describe(self) -> dict[str, Any]:
        return {
            "id": self.activity_id,
            "title": self.title,
            "description": self.description,
            "collection": self.collection,
            "activityType": self.activity_type,
            "fields": [spec.describe() for spec in self.fields.values()],
        }


# =============================================================================
# PARSING
# =============================================================================

def _parse_field(raw: Mapping[str, Any], where: str) -> FieldSpec:
    name = raw.get("name")
    if not name:
        raise SchemaDefinitionError(f"{where}: field without a name")
    try:
        kind = FieldKind(raw.get("kind", "scalar"))
    except ValueError:
        raise SchemaDefinitionError(f"{where}.{name}: unknown kind {raw.get('kind')!r}")

    value_type = None
    if kind == FieldKind.SCALAR:
        try:
            value_type = ValueType(raw.get("type", "text"))
        except ValueError:
            raise SchemaDefinitionError(f"{where}.{name}: unknown type {raw.get('type')!r}")
        if value_type == ValueType.CHOICE and not raw.get("choices"):
            raise SchemaDefinitionError(f"{where}.{name}: choice field without choices")

    row_fields: tuple[FieldSpec, ...] = ()
    if kind == FieldKind.REPEATABLE:
        row_fields = tuple(
            _parse_field(row, f"{where}.{name}") for row in raw.get("row_fields", [])
        )
        if not row_fields:
            raise SchemaDefinitionError(f"{where}.{name}: repeatable field without row_fields")
        for row in row_fields:
            if row.kind != FieldKind.SCALAR:
                raise SchemaDefinitionError(f"{where}.{name}.{row.name}: rows hold scalars only")

    required = bool(raw.get("required", True))
    default = raw.get("default")
    if kind == FieldKind.GATE:
        default = bool(default)
    elif value_type == ValueType.BOOLEAN:
        default = bool(default)
    elif value_type == ValueType.TEXT and default is None:
        default = ""

    min_items = int(raw.get("min_items", 1 if required else 0))
    max_items = raw.get("max_items")
    if kind == FieldKind.SINGLE_EVIDENCE:
        max_items = 1
        min_items = min(min_items, 1)

    return FieldSpec(
        name=name,
        kind=kind,
        label=raw.get("label", name),
        required=required,
        value_type=value_type,
        default=default,
        min_value=raw.get("min"),
        max_value=raw.get("max"),
        choices=tuple(str(c) for c in raw.get("choices", [])),
        min_items=min_items if kind in EVIDENCE_KINDS else 0,
        max_items=int(max_items) if max_items is not None else None,
        row_fields=row_fields,
        min_rows=int(raw.get("min_rows", 1 if required else 0)) if row_fields else 0,
        default_row=dict(raw.get("default_row", {})),
        dependents=tuple(raw.get("dependents", [])),
        reveal_when=bool(raw.get("reveal_when", True)),
    )


def _build_schema(activity_id: str, raw: Mapping[str, Any]) -> FormSchema:
    fields: dict[str, FieldSpec] = {}
    for raw_field in raw.get("fields", []):
        spec = _parse_field(raw_field, activity_id)
        if spec.name in fields:
            raise SchemaDefinitionError(f"{activity_id}: duplicate field {spec.name}")
        fields[spec.name] = spec

    governors: dict[str, list[str]] = {}
    for spec in fields.values():
        if spec.dependents and not spec.is_gate:
            raise SchemaDefinitionError(f"{activity_id}.{spec.name}: only gates have dependents")
        for dependent in spec.dependents:
            if dependent == spec.name:
                raise SchemaDefinitionError(f"{activity_id}.{spec.name}: gate governs itself")
            if dependent not in fields:
                raise SchemaDefinitionError(
                    f"{activity_id}.{spec.name}: dependent {dependent} is not declared"
                )
            governors.setdefault(dependent, []).append(spec.name)

    for name in fields:
        _check_circular(activity_id, name, fields, [])

    for key in ("collection", "activity_type"):
        if not raw.get(key):
            raise SchemaDefinitionError(f"{activity_id}: missing {key}")

    return FormSchema(
        activity_id=activity_id,
        title=raw.get("title", activity_id),
        description=raw.get("description", ""),
        collection=raw["collection"],
        activity_type=raw["activity_type"],
        fields=fields,
        governors={k: tuple(v) for k, v in governors.items()},
    )


def _check_circular(
    activity_id: str,
    name: str,
    fields: Mapping[str, FieldSpec],
    path: list[str],
) -> None:
    if name in path:
        raise SchemaDefinitionError(
            f"{activity_id}: circular gate dependency {' -> '.join(path + [name])}"
        )
    for dependent in fields[name].dependents:
        _check_circular(activity_id, dependent, fields, path + [name])


# =============================================================================
# REGISTRY
# =============================================================================

class SchemaRegistry:
    """
    Activity schema registry.

    The YAML document is the single source of truth for field names, which
    are also the persisted record keys the admin dashboard reads back.
    """

    def __init__(self, schema_path: Optional[str] = None) -> None:
        self._schema_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH
        self._schemas: dict[str, FormSchema] = {}
        self._loaded = False

    def load(self) -> None:
        """Load and validate every activity definition."""
        with open(self._schema_path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}

        activities = document.get("activities")
        if not activities:
            raise SchemaDefinitionError(f"{self._schema_path}: no activities declared")

        schemas = {
            activity_id: _build_schema(activity_id, raw)
            for activity_id, raw in activities.items()
        }
        collections = [s.collection for s in schemas.values()]
        if len(set(collections)) != len(collections):
            raise SchemaDefinitionError("Two activities share a collection")

        self._schemas = schemas
        self._loaded = True
        logger.info(f"Loaded {len(schemas)} activity schemas from {self._schema_path}")

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def get(self, activity_id: str) -> FormSchema:
        self._ensure_loaded()
        try:
            return self._schemas[activity_id]
        except KeyError:
            raise UnknownActivity(f"Unknown activity: {activity_id}") from None

    def all(self) -> list[FormSchema]:
        self._ensure_loaded()
        return list(self._schemas.values())

    def collections(self) -> dict[str, str]:
        """collection name -> activityType discriminator."""
        return {s.collection: s.activity_type for s in self.all()}


@lru_cache()
def get_registry() -> SchemaRegistry:
    registry = SchemaRegistry(settings.ACTIVITY_SCHEMA_PATH)
    registry.load()
    return registry
