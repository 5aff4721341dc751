"""Multi — an ordered batch of writes executed in one transaction.

Build it up, then hand it to ``Repo.transaction(multi)``::

    multi = Multi()
    multi.insert(user)
    multi.update(post)
    multi.delete_all(Comment, Query().where(post_id=post.id))
    multi = repo.transaction(multi)
    if not multi.valid:
        print(multi.errors)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from crecto.domain.query import Query

if TYPE_CHECKING:
    from crecto.domain.changeset import Changeset
    from crecto.domain.schema import Model


@dataclass
class Operation:
    """One recorded write."""

    kind: str
    instance: Model | None = None
    model: type[Model] | None = None
    query: Query | None = None
    values: dict[str, Any] = field(default_factory=dict)
    changeset: Changeset[Any] | None = None
    rows_affected: int | None = None

    @property
    def queryable(self) -> str:
        if self.instance is not None:
            return type(self.instance).__name__
        assert self.model is not None
        return self.model.__name__


class Multi:
    """Ordered write operations plus the errors of the last execution."""

    def __init__(self) -> None:
        self.operations: list[Operation] = []
        self.errors: list[dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def changesets(self) -> list[Changeset[Any]]:
        return [op.changeset for op in self.operations if op.changeset is not None]

    def insert(self, instance: Model) -> Multi:
        self.operations.append(Operation("insert", instance=instance))
        return self

    def update(self, instance: Model) -> Multi:
        self.operations.append(Operation("update", instance=instance))
        return self

    def delete(self, instance: Model) -> Multi:
        self.operations.append(Operation("delete", instance=instance))
        return self

    def update_all(self, model: type[Model], query: Query | None, values: dict[str, Any]) -> Multi:
        self.operations.append(
            Operation("update_all", model=model, query=query or Query(), values=dict(values))
        )
        return self

    def delete_all(self, model: type[Model], query: Query | None = None) -> Multi:
        self.operations.append(Operation("delete_all", model=model, query=query or Query()))
        return self

    def add_error(self, operation: Operation, field: str, message: str) -> None:
        self.errors.append(
            {
                "field": field,
                "message": message,
                "queryable": operation.queryable,
                "failed_operation": operation.kind,
            }
        )
