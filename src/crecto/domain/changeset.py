"""Changeset — validated, diffed view of an instance about to be written.

Building a changeset runs every validator declared on the schema, then
type-checks the remaining values, then diffs the instance against its
snapshot. The repo only writes changesets that are valid.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from crecto.domain.schema import Model

M = TypeVar("M", bound="Model")


class Changeset(Generic[M]):
    """Errors and pending changes for one schema instance.

    Attributes:
        instance: The instance being written. The repo hydrates it in place
            after a successful write.
        action: ``"insert"``, ``"update"``, ``"delete"`` or ``None``.
        errors: ``{"field": ..., "message": ...}`` dicts in discovery order.
        changes: ``{field: new_value}`` dicts, one per changed field.
    """

    def __init__(self, instance: M, *, action: str | None = None, validate: bool = True) -> None:
        self.instance = instance
        self.action = action
        self.errors: list[dict[str, str]] = []
        self.changes: list[dict[str, Any]] = []
        if validate:
            self._run_validations()
            self._check_types()
        self._diff()

    def __repr__(self) -> str:
        return (
            f"<Changeset {type(self.instance).__name__} action={self.action!r} "
            f"valid={self.valid} changes={self.changed_fields}>"
        )

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def changed_fields(self) -> list[str]:
        return [name for change in self.changes for name in change]

    def get_change(self, field: str, default: Any = None) -> Any:
        for change in self.changes:
            if field in change:
                return change[field]
        return default

    def add_error(self, field: str, message: str) -> None:
        self.errors.append({"field": field, "message": message})

    def errors_for(self, field: str) -> list[str]:
        return [e["message"] for e in self.errors if e["field"] == field]

    # ------------------------------------------------------------------

    def _run_validations(self) -> None:
        for validator in type(self.instance)._validators:
            for field, message in validator.validate(self.instance):
                self.add_error(field, message)

    def _check_types(self) -> None:
        already_invalid = {e["field"] for e in self.errors}
        for name, field in type(self.instance).fields().items():
            if name in already_invalid:
                continue
            value = self.instance._values.get(name)
            if not field.check_type(value):
                self.add_error(name, f"must be a {field.type.value}")

    def _diff(self) -> None:
        self.changes = [{name: value} for name, value in self.instance.pending_changes().items()]
