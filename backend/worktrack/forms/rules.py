"""Scalar value coercion and validation rules."""

from datetime import date, datetime
from typing import Any, Optional

from worktrack.forms.schema import FieldSpec, ValueType


_TRUE = ("true", "yes", "1")
_FALSE = ("false", "no", "0")


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_bool(value: Any) -> Optional[bool]:
    """True/False for booleans, 0/1 and yes/no strings; None for anything else."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    return None


def coerce_value(spec: FieldSpec, value: Any) -> Any:
    """
    Best-effort conversion of client input to the field's value type.

    Unconvertible input is returned unchanged so validation can report it.
    """
    if is_blank(value):
        return "" if spec.value_type == ValueType.TEXT else None
    if spec.value_type in (ValueType.NUMBER, ValueType.INTEGER) and isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return value
        if spec.value_type == ValueType.INTEGER and number.is_integer():
            return int(number)
        return number
    if spec.value_type == ValueType.BOOLEAN and isinstance(value, str):
        parsed = parse_bool(value)
        return value if parsed is None else parsed
    if spec.value_type == ValueType.CHOICE and not isinstance(value, str):
        return str(value)
    return value


def validate_scalar(spec: FieldSpec, value: Any) -> list[str]:
    """Return the error messages for one scalar value (empty when valid)."""
    if is_blank(value):
        return [f"{spec.label} is required"] if spec.required else []

    vt = spec.value_type
    if vt == ValueType.TEXT:
        if not isinstance(value, str):
            return [f"{spec.label} must be text"]
        return []

    if vt == ValueType.BOOLEAN:
        return [] if isinstance(value, bool) else [f"{spec.label} must be yes or no"]

    if vt in (ValueType.NUMBER, ValueType.INTEGER):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return [f"{spec.label} must be a number"]
        if vt == ValueType.INTEGER and not float(value).is_integer():
            return [f"{spec.label} must be a whole number"]
        errors = []
        if spec.min_value is not None and value < spec.min_value:
            errors.append(f"{spec.label} must be at least {spec.min_value:g}")
        if spec.max_value is not None and value > spec.max_value:
            errors.append(f"{spec.label} must be at most {spec.max_value:g}")
        return errors

    if vt == ValueType.CHOICE:
        if value not in spec.choices:
            return [f"{spec.label} must be one of: {', '.join(spec.choices)}"]
        return []

    if vt == ValueType.DATE:
        try:
            date.fromisoformat(str(value))
        except ValueError:
            return [f"{spec.label} must be a date (YYYY-MM-DD)"]
        return []

    if vt == ValueType.DATETIME:
        try:
            datetime.fromisoformat(str(value))
        except ValueError:
            return [f"{spec.label} must be a date and time"]
        return []

    return []


def validate_row(row_fields: tuple[FieldSpec, ...], row: dict[str, Any]) -> dict[str, list[str]]:
    """Per-field errors for one repeatable row; empty dict when valid."""
    errors: dict[str, list[str]] = {}
    for spec in row_fields:
        messages = validate_scalar(spec, row.get(spec.name, spec.default))
        if messages:
            errors[spec.name] = messages
    return errors
