"""Declarative changeset validators.

Validators are attached to a schema either in its ``validations`` class
attribute or with the module-level helpers::

    class User(Model):
        name = Field("string")
        email = Field("string")
        validations = [Required("name"), Format("email", r"@")]

    validate_inclusion(User, "role", ["admin", "member"])

Each validator returns ``(field, message)`` pairs for the problems it finds.
Format, inclusion, exclusion and length skip ``None`` values; pair them with
:class:`Required` when the field is mandatory.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from crecto.domain.schema import Model

REQUIRED_MESSAGE = "is required"
INVALID_MESSAGE = "is invalid"
TAKEN_MESSAGE = "has already been taken"


@dataclass(frozen=True)
class Validator:
    """Base validator bound to a single field."""

    field: str

    def validate(self, instance: Model) -> list[tuple[str, str]]:
        raise NotImplementedError

    def _value(self, instance: Model) -> Any:
        return instance._values.get(self.field)


@dataclass(frozen=True)
class Required(Validator):
    """Field must be present: not ``None`` and not an empty/blank string."""

    message: str = REQUIRED_MESSAGE

    def validate(self, instance: Model) -> list[tuple[str, str]]:
        value = self._value(instance)
        if value is None or (isinstance(value, str) and not value.strip()):
            return [(self.field, self.message)]
        return []


@dataclass(frozen=True)
class Format(Validator):
    """String value must match a regular expression (``re.search``)."""

    pattern: str | re.Pattern[str] = ""
    message: str = INVALID_MESSAGE

    def validate(self, instance: Model) -> list[tuple[str, str]]:
        value = self._value(instance)
        if value is None:
            return []
        regex = self.pattern if isinstance(self.pattern, re.Pattern) else re.compile(self.pattern)
        if not isinstance(value, str) or regex.search(value) is None:
            return [(self.field, self.message)]
        return []


@dataclass(frozen=True)
class Inclusion(Validator):
    """Value must be one of *values*."""

    values: Collection[Any] = ()
    message: str = INVALID_MESSAGE

    def validate(self, instance: Model) -> list[tuple[str, str]]:
        value = self._value(instance)
        if value is None or value in self.values:
            return []
        return [(self.field, self.message)]


@dataclass(frozen=True)
class Exclusion(Validator):
    """Value must not be one of *values*."""

    values: Collection[Any] = ()
    message: str = INVALID_MESSAGE

    def validate(self, instance: Model) -> list[tuple[str, str]]:
        value = self._value(instance)
        if value is not None and value in self.values:
            return [(self.field, self.message)]
        return []


@dataclass(frozen=True)
class Length(Validator):
    """Length bounds for strings and sequences; ``is_`` demands an exact length."""

    min: int | None = None
    max: int | None = None
    is_: int | None = None
    message: str = INVALID_MESSAGE

    def validate(self, instance: Model) -> list[tuple[str, str]]:
        value = self._value(instance)
        if value is None:
            return []
        try:
            size = len(value)
        except TypeError:
            return [(self.field, self.message)]
        if self.is_ is not None and size != self.is_:
            return [(self.field, self.message)]
        if self.min is not None and size < self.min:
            return [(self.field, self.message)]
        if self.max is not None and size > self.max:
            return [(self.field, self.message)]
        return []


@dataclass(frozen=True)
class Custom(Validator):
    """Arbitrary predicate over the whole instance.

    The error is reported under ``field`` (``"_base"`` by default).
    """

    message: str = INVALID_MESSAGE
    func: Callable[[Any], bool] = dataclasses.field(default=lambda _instance: True, compare=False)

    def validate(self, instance: Model) -> list[tuple[str, str]]:
        if self.func(instance):
            return []
        return [(self.field, self.message)]


@dataclass(frozen=True)
class Unique(Validator):
    """Marks a field unique.

    Uniqueness needs the database, so :meth:`validate` is a no-op; the repo
    checks it before writing and the generated column carries a unique
    constraint.
    """

    message: str = TAKEN_MESSAGE

    def validate(self, instance: Model) -> list[tuple[str, str]]:
        return []


# ---------------------------------------------------------------------------
# Declarative helpers (append to an existing schema)
# ---------------------------------------------------------------------------


def _register(model: type[Model], validators: Iterable[Validator]) -> None:
    model._validators.extend(validators)


def validate_required(model: type[Model], *fields: str, message: str = REQUIRED_MESSAGE) -> None:
    _register(model, (Required(name, message=message) for name in fields))


def validate_format(
    model: type[Model],
    field_name: str,
    pattern: str | re.Pattern[str],
    *,
    message: str = INVALID_MESSAGE,
) -> None:
    _register(model, [Format(field_name, pattern=pattern, message=message)])


def validate_inclusion(
    model: type[Model],
    field_name: str,
    values: Collection[Any],
    *,
    message: str = INVALID_MESSAGE,
) -> None:
    _register(model, [Inclusion(field_name, values=values, message=message)])


def validate_exclusion(
    model: type[Model],
    field_name: str,
    values: Collection[Any],
    *,
    message: str = INVALID_MESSAGE,
) -> None:
    _register(model, [Exclusion(field_name, values=values, message=message)])


def validate_length(
    model: type[Model],
    field_name: str,
    *,
    min: int | None = None,  # noqa: A002
    max: int | None = None,  # noqa: A002
    is_: int | None = None,
    message: str = INVALID_MESSAGE,
) -> None:
    _register(model, [Length(field_name, min=min, max=max, is_=is_, message=message)])


def validate(
    model: type[Model],
    message: str,
    func: Callable[[Any], bool],
    *,
    field_name: str = "_base",
) -> None:
    _register(model, [Custom(field_name, message=message, func=func)])


def unique_constraint(model: type[Model], field_name: str, *, message: str = TAKEN_MESSAGE) -> None:
    """Declare *field_name* unique after the schema class was defined.

    Must run before the schema's table is generated for the column to carry
    the constraint.
    """
    _register(model, [Unique(field_name, message=message)])
