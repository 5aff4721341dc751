"""Field types and value casting.

Casting turns loosely-typed input (form params, CLI flags, JSON) into the
Python value a field stores. Type checking is the changeset's job: a value
that cannot be cast is kept as-is so the changeset can report it.
"""

from __future__ import annotations

import json
from datetime import UTC, date, datetime
from enum import Enum, StrEnum
from typing import Any


class FieldType(StrEnum):
    """Column types a schema field can declare."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    BIGINT = "bigint"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    JSON = "json"
    ARRAY = "array"
    ENUM = "enum"


class CastError(ValueError):
    """Raised when a raw value cannot be cast to a field type."""


_TRUE_STRINGS = frozenset({"true", "1", "yes", "on", "t", "y"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off", "f", "n"})

_INTEGER_TYPES = frozenset({FieldType.INTEGER, FieldType.BIGINT})


def _cast_int(value: Any) -> int:
    if isinstance(value, bool):
        raise CastError(f"cannot cast boolean {value!r} to integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise CastError(f"cannot cast {value!r} to integer without loss")
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise CastError(f"cannot cast {value!r} to integer") from exc
    raise CastError(f"cannot cast {type(value).__name__} to integer")


def _cast_float(value: Any) -> float:
    if isinstance(value, bool):
        raise CastError(f"cannot cast boolean {value!r} to float")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as exc:
            raise CastError(f"cannot cast {value!r} to float") from exc
    raise CastError(f"cannot cast {type(value).__name__} to float")


def _cast_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise CastError(f"cannot cast {value!r} to boolean")


def _cast_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError as exc:
            raise CastError(f"cannot cast {value!r} to datetime") from exc
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=UTC)
    raise CastError(f"cannot cast {type(value).__name__} to datetime")


def _cast_json(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            raise CastError(f"cannot cast {value!r} to json") from exc
    raise CastError(f"cannot cast {type(value).__name__} to json")


def _cast_array(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError as exc:
            raise CastError(f"cannot cast {value!r} to array") from exc
        if isinstance(decoded, list):
            return decoded
    raise CastError(f"cannot cast {value!r} to array")


def _cast_enum(value: Any, enum: type[Enum] | None) -> Enum:
    if enum is None:
        raise CastError("enum field declared without an enum class")
    if isinstance(value, enum):
        return value
    try:
        return enum(value)
    except ValueError:
        pass
    if isinstance(value, str) and value in enum.__members__:
        return enum.__members__[value]
    raise CastError(f"{value!r} is not a member of {enum.__name__}")


def cast_value(field_type: FieldType, value: Any, *, enum: type[Enum] | None = None) -> Any:
    """Cast *value* to the Python representation of *field_type*.

    ``None`` always passes through unchanged.

    Raises:
        CastError: If the value cannot be represented as *field_type*.
    """
    if value is None:
        return None
    if field_type in (FieldType.STRING, FieldType.TEXT):
        if isinstance(value, (dict, list)):
            raise CastError(f"cannot cast {type(value).__name__} to string")
        if isinstance(value, Enum):
            return str(value.value)
        return str(value)
    if field_type in _INTEGER_TYPES:
        return _cast_int(value)
    if field_type is FieldType.FLOAT:
        return _cast_float(value)
    if field_type is FieldType.BOOLEAN:
        return _cast_bool(value)
    if field_type is FieldType.DATETIME:
        return _cast_datetime(value)
    if field_type is FieldType.JSON:
        return _cast_json(value)
    if field_type is FieldType.ARRAY:
        return _cast_array(value)
    if field_type is FieldType.ENUM:
        return _cast_enum(value, enum)
    raise CastError(f"unknown field type {field_type!r}")


def is_instance_of(field_type: FieldType, value: Any, *, enum: type[Enum] | None = None) -> bool:
    """Check that *value* already has the Python type *field_type* stores."""
    if value is None:
        return True
    if field_type in (FieldType.STRING, FieldType.TEXT):
        return isinstance(value, str)
    if field_type in _INTEGER_TYPES:
        return isinstance(value, int) and not isinstance(value, bool)
    if field_type is FieldType.FLOAT:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if field_type is FieldType.BOOLEAN:
        return isinstance(value, bool)
    if field_type is FieldType.DATETIME:
        return isinstance(value, datetime)
    if field_type is FieldType.JSON:
        return isinstance(value, (dict, list))
    if field_type is FieldType.ARRAY:
        return isinstance(value, list)
    if field_type is FieldType.ENUM:
        return enum is not None and isinstance(value, enum)
    return False
