"""Schema base class, model registry, and change tracking.

A schema is a ``Model`` subclass whose class attributes declare fields and
associations::

    class User(Model):
        __tablename__ = "users"

        name = Field("string")
        age = Field("integer", default=0)
        posts = HasMany("Post", dependent="destroy")

Class construction fills in what the declaration leaves implicit:

- an auto-increment integer ``id`` primary key when none is declared,
- ``<name>_id`` integer fields for ``BelongsTo`` associations,
- ``created_at`` / ``updated_at`` datetime fields unless disabled by
  setting ``created_at_field`` / ``updated_at_field`` to ``None``.

INVARIANT: an instance loaded or saved by the repo carries a snapshot of its
persisted values. The changeset diffs against that snapshot; instances
without one are new and every non-``None`` field counts as a change.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, ClassVar, Self

from crecto.domain.associations import Association, BelongsTo
from crecto.domain.fields import Field
from crecto.domain.types import CastError, FieldType
from crecto.domain.validations import Unique, Validator
from crecto.errors import InvalidAssociationError

if TYPE_CHECKING:
    from crecto.domain.changeset import Changeset

_MODEL_REGISTRY: dict[str, type[Model]] = {}


def snake_case(name: str) -> str:
    """``UserProject`` -> ``user_project``."""
    text = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", text).lower()


def default_table_name(class_name: str) -> str:
    """Naive English plural of the snake-cased class name."""
    base = snake_case(class_name)
    if base.endswith("y") and not base.endswith(("ay", "ey", "oy", "uy")):
        return base[:-1] + "ies"
    if base.endswith(("s", "x", "ch", "sh")):
        return base + "es"
    return base + "s"


def get_model(name: str) -> type[Model]:
    """Look up a schema class by class name.

    Raises:
        InvalidAssociationError: If no schema with that name was defined.
    """
    try:
        return _MODEL_REGISTRY[name]
    except KeyError:
        msg = f"Unknown schema {name!r}; is the module defining it imported?"
        raise InvalidAssociationError(msg) from None


def registered_models() -> list[type[Model]]:
    """All concrete schemas defined so far, in definition order."""
    return list(_MODEL_REGISTRY.values())


def _attach_field(cls: type[Model], name: str, field: Field) -> Field:
    setattr(cls, name, field)
    field.__set_name__(cls, name)
    return field


class Model:
    """Base class for all schemas."""

    __abstract__: ClassVar[bool] = True
    __tablename__: ClassVar[str]

    created_at_field: ClassVar[str | None] = "created_at"
    updated_at_field: ClassVar[str | None] = "updated_at"
    validations: ClassVar[list[Validator]] = []

    _fields: ClassVar[dict[str, Field]] = {}
    _association_map: ClassVar[dict[str, Association]] = {}
    _validators: ClassVar[list[Validator]] = []
    _primary_key: ClassVar[str] = "id"

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._validators = [*cls._validators, *cls.__dict__.get("validations", [])]
        if cls.__dict__.get("__abstract__", False):
            return
        if "__tablename__" not in cls.__dict__:
            cls.__tablename__ = default_table_name(cls.__name__)

        fields: dict[str, Field] = {}
        associations: dict[str, Association] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if isinstance(attr, Field):
                    fields[name] = attr
                elif isinstance(attr, Association):
                    associations[name] = attr

        primary_keys = [name for name, f in fields.items() if f.primary_key]
        if len(primary_keys) > 1:
            msg = f"{cls.__name__} declares more than one primary key: {primary_keys}"
            raise TypeError(msg)
        if primary_keys:
            pk_name = primary_keys[0]
        else:
            pk_name = "id"
            if pk_name in fields:
                msg = f"{cls.__name__}.id must be declared with primary_key=True"
                raise TypeError(msg)
            pk_field = Field(FieldType.INTEGER, primary_key=True)
            fields[pk_name] = _attach_field(cls, pk_name, pk_field)

        for assoc in associations.values():
            if isinstance(assoc, BelongsTo) and assoc.foreign_key not in fields:
                fk = assoc.foreign_key
                fields[fk] = _attach_field(cls, fk, Field(FieldType.INTEGER, index=True))

        for stamp in (cls.created_at_field, cls.updated_at_field):
            if stamp and stamp not in fields:
                fields[stamp] = _attach_field(cls, stamp, Field(FieldType.DATETIME))

        cls._primary_key = pk_name
        cls._fields = {pk_name: fields.pop(pk_name), **fields}
        cls._association_map = associations
        _MODEL_REGISTRY[cls.__name__] = cls

    def __init__(self, **values: Any) -> None:
        self._values: dict[str, Any] = {}
        self._loaded: dict[str, Any] = {}
        self._snapshot: dict[str, Any] | None = None
        self._deleted = False
        if type(self).__dict__.get("__abstract__", False):
            msg = f"{type(self).__name__} is abstract and cannot be instantiated"
            raise TypeError(msg)

        unknown = set(values) - set(self._fields) - set(self._association_map)
        if unknown:
            msg = f"{type(self).__name__} got unknown field(s): {sorted(unknown)}"
            raise TypeError(msg)

        for name, field in self._fields.items():
            self._values[name] = values[name] if name in values else field.default_value()
        for name in self._association_map:
            if name in values:
                setattr(self, name, values[name])

    def __repr__(self) -> str:
        pk = self._values.get(self._primary_key)
        return f"<{type(self).__name__} {self._primary_key}={pk!r}>"

    # ------------------------------------------------------------------
    # Schema introspection
    # ------------------------------------------------------------------

    @classmethod
    def fields(cls) -> dict[str, Field]:
        return dict(cls._fields)

    @classmethod
    def persisted_fields(cls) -> dict[str, Field]:
        return {name: f for name, f in cls._fields.items() if f.persisted}

    @classmethod
    def associations(cls) -> dict[str, Association]:
        return dict(cls._association_map)

    @classmethod
    def association(cls, name: str) -> Association:
        try:
            return cls._association_map[name]
        except KeyError:
            msg = f"{cls.__name__} has no association named {name!r}"
            raise InvalidAssociationError(msg) from None

    @classmethod
    def primary_key_field(cls) -> str:
        return cls._primary_key

    @classmethod
    def unique_fields(cls) -> list[str]:
        """Fields declared unique via ``Field(unique=True)`` or a Unique validator."""
        names = [name for name, f in cls._fields.items() if f.unique and not f.primary_key]
        for validator in cls._validators:
            if isinstance(validator, Unique) and validator.field not in names:
                names.append(validator.field)
        return names

    @classmethod
    def unique_message(cls, field_name: str) -> str:
        for validator in cls._validators:
            if isinstance(validator, Unique) and validator.field == field_name:
                return validator.message
        return Unique(field_name).message

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    @property
    def primary_key_value(self) -> Any:
        return self._values.get(self._primary_key)

    @property
    def persisted(self) -> bool:
        """Whether this instance was loaded from or saved to the database."""
        return self._snapshot is not None

    @property
    def deleted(self) -> bool:
        """Whether the repo deleted this instance's row."""
        return self._deleted

    def to_dict(self) -> dict[str, Any]:
        """All field values, virtual fields included."""
        return dict(self._values)

    def to_query_dict(self) -> dict[str, Any]:
        """Persisted field values converted for storage."""
        return {
            name: field.to_db(self._values.get(name))
            for name, field in self._fields.items()
            if field.persisted
        }

    def changeset(self, action: str | None = None, *, validate: bool = True) -> Changeset[Self]:
        from crecto.domain.changeset import Changeset

        return Changeset(self, action=action, validate=validate)

    def loaded_associations(self) -> list[str]:
        return list(self._loaded)

    @classmethod
    def cast(cls, params: Mapping[str, Any], whitelist: Iterable[str] | None = None) -> Self:
        """Build an instance from loosely typed *params*.

        Keys that are not fields (or not in *whitelist*) are ignored. Values
        that cannot be cast are kept as given so the changeset reports them.
        """
        allowed = set(whitelist) if whitelist is not None else None
        values: dict[str, Any] = {}
        for key, raw in params.items():
            field = cls._fields.get(key)
            if field is None or (allowed is not None and key not in allowed):
                continue
            try:
                values[key] = field.cast(raw)
            except CastError:
                values[key] = raw
        return cls(**values)

    def apply(self, params: Mapping[str, Any], whitelist: Iterable[str] | None = None) -> Self:
        """Cast *params* onto this instance in place, keeping its snapshot."""
        allowed = set(whitelist) if whitelist is not None else None
        casted = type(self).cast(params, allowed)
        for key in params:
            if key in self._fields and (allowed is None or key in allowed):
                self._values[key] = casted._values[key]
        return self

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Self:
        """Hydrate an instance from a database row and snapshot it."""
        instance = cls.__new__(cls)
        instance._values = {}
        instance._loaded = {}
        instance._deleted = False
        for name, field in cls._fields.items():
            if field.persisted:
                instance._values[name] = field.from_db(row.get(name))
            else:
                instance._values[name] = field.default_value()
        instance.take_snapshot()
        return instance

    def take_snapshot(self) -> None:
        """Mark the current persisted values as the clean state."""
        self._deleted = False
        self._snapshot = copy.deepcopy(
            {name: self._values.get(name) for name, f in self._fields.items() if f.persisted}
        )

    def mark_deleted(self) -> None:
        """Drop the snapshot; the repo refuses further updates and deletes."""
        self._snapshot = None
        self._deleted = True

    def pending_changes(self) -> dict[str, Any]:
        """Persisted fields whose value differs from the snapshot."""
        changes: dict[str, Any] = {}
        for name, field in self._fields.items():
            if not field.persisted:
                continue
            value = self._values.get(name)
            if self._snapshot is None:
                if value is not None:
                    changes[name] = value
            elif name not in self._snapshot or self._snapshot[name] != value:
                changes[name] = value
        return changes
