"""Schema field descriptors.

A ``Field`` is declared as a class attribute of a Model subclass. On
instances it reads and writes the instance's value dict; on the class it
returns itself so the schema can be introspected.
"""

from __future__ import annotations

import copy
import json
from enum import Enum
from typing import TYPE_CHECKING, Any

from crecto.domain.types import CastError, FieldType, cast_value, is_instance_of

if TYPE_CHECKING:
    from crecto.domain.schema import Model


class Field:
    """A typed, optionally persisted attribute of a schema.

    Args:
        type_: Storage type; strings are coerced to :class:`FieldType`.
        primary_key: Marks the schema's primary key (one per schema).
        default: Value or zero-argument callable used when the constructor
            omits the field. Mutable defaults are copied per instance.
        nullable: Whether the generated column accepts ``NULL``.
        virtual: Virtual fields live on the instance but are never
            persisted or loaded.
        enum: Enum class for :attr:`FieldType.ENUM` fields.
        index: Create a non-unique index on the generated column.
        unique: Create a unique constraint on the generated column.
    """

    def __init__(
        self,
        type_: FieldType | str = FieldType.STRING,
        *,
        primary_key: bool = False,
        default: Any = None,
        nullable: bool = True,
        virtual: bool = False,
        enum: type[Enum] | None = None,
        index: bool = False,
        unique: bool = False,
    ) -> None:
        self.type = FieldType(type_)
        if self.type is FieldType.ENUM and enum is None:
            msg = "Enum fields require an enum class"
            raise TypeError(msg)
        if primary_key and virtual:
            msg = "A primary key cannot be virtual"
            raise TypeError(msg)
        self.primary_key = primary_key
        self.default = default
        self.nullable = nullable and not primary_key
        self.virtual = virtual
        self.enum = enum
        self.index = index
        self.unique = unique
        self.name: str = ""

    def __set_name__(self, owner: type[Model], name: str) -> None:
        self.name = name

    def __get__(self, instance: Model | None, owner: type[Model]) -> Any:
        if instance is None:
            return self
        return instance._values.get(self.name)

    def __set__(self, instance: Model, value: Any) -> None:
        instance._values[self.name] = value

    def __repr__(self) -> str:
        return f"Field({self.name!r}, {self.type.value!r})"

    @property
    def persisted(self) -> bool:
        return not self.virtual

    @property
    def autoincrement(self) -> bool:
        """Integer primary keys without a default are assigned by the database."""
        return (
            self.primary_key
            and self.type in (FieldType.INTEGER, FieldType.BIGINT)
            and self.default is None
        )

    def default_value(self) -> Any:
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)

    def cast(self, value: Any) -> Any:
        return cast_value(self.type, value, enum=self.enum)

    def check_type(self, value: Any) -> bool:
        return is_instance_of(self.type, value, enum=self.enum)

    def to_db(self, value: Any) -> Any:
        """Convert an instance value into what the column stores."""
        if value is None:
            return None
        if self.type is FieldType.ENUM and isinstance(value, Enum):
            return value.value
        return value

    def from_db(self, value: Any) -> Any:
        """Convert a stored column value back into the instance value."""
        if value is None:
            return None
        if self.type is FieldType.ENUM:
            return self.cast(value)
        if self.type is FieldType.ARRAY and isinstance(value, str):
            return json.loads(value)
        if self.type is FieldType.BOOLEAN and isinstance(value, int):
            return bool(value)
        if self.type is FieldType.FLOAT and isinstance(value, int):
            return float(value)
        if self.type is FieldType.DATETIME and isinstance(value, str):
            try:
                return self.cast(value)
            except CastError:
                return value
        return value
