"""Association descriptors: belongs_to, has_many, has_one.

Associations are never loaded implicitly. Reading one that has not been
preloaded (or assigned) raises :class:`AssociationNotLoadedError`, which
keeps N+1 query patterns visible instead of silently issuing SQL.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

from crecto.errors import AssociationNotLoadedError, InvalidAssociationError

if TYPE_CHECKING:
    from crecto.domain.schema import Model


class Dependent(StrEnum):
    """What happens to associated rows when the owner is deleted."""

    DESTROY = "destroy"
    NULLIFY = "nullify"


class Association:
    """Base descriptor for a named relation between two schemas."""

    kind: ClassVar[str] = ""
    many: ClassVar[bool] = False

    def __init__(
        self,
        target: str | type[Model],
        *,
        foreign_key: str | None = None,
        dependent: Dependent | str | None = None,
    ) -> None:
        self._target = target
        self._foreign_key = foreign_key
        self.dependent = Dependent(dependent) if dependent is not None else None
        self.name: str = ""
        self.owner: type[Model] | None = None

    def __set_name__(self, owner: type[Model], name: str) -> None:
        self.name = name
        self.owner = owner

    def __get__(self, instance: Model | None, owner: type[Model]) -> Any:
        if instance is None:
            return self
        try:
            return instance._loaded[self.name]
        except KeyError:
            raise AssociationNotLoadedError(type(instance), self.name) from None

    def __set__(self, instance: Model, value: Any) -> None:
        instance._loaded[self.name] = value

    def __repr__(self) -> str:
        target = self._target if isinstance(self._target, str) else self._target.__name__
        return f"{type(self).__name__}({self.name!r}, {target!r})"

    @property
    def target(self) -> type[Model]:
        """The associated schema class, resolved through the model registry."""
        if isinstance(self._target, str):
            from crecto.domain.schema import get_model

            return get_model(self._target)
        return self._target

    @property
    def foreign_key(self) -> str:
        raise NotImplementedError


class BelongsTo(Association):
    """The owner holds ``<name>_id`` pointing at the target's primary key."""

    kind = "belongs_to"
    many = False

    def __init__(self, target: str | type[Model], *, foreign_key: str | None = None) -> None:
        super().__init__(target, foreign_key=foreign_key)

    @property
    def foreign_key(self) -> str:
        return self._foreign_key or f"{self.name}_id"


class HasMany(Association):
    """The target holds a foreign key pointing at the owner's primary key.

    With ``through``, the relation goes via another ``HasMany`` on the owner
    (the join schema), whose ``BelongsTo`` pointing at *target* supplies the
    second hop.
    """

    kind = "has_many"
    many = True

    def __init__(
        self,
        target: str | type[Model],
        *,
        foreign_key: str | None = None,
        through: str | None = None,
        dependent: Dependent | str | None = None,
    ) -> None:
        super().__init__(target, foreign_key=foreign_key, dependent=dependent)
        self.through = through

    @property
    def foreign_key(self) -> str:
        if self._foreign_key:
            return self._foreign_key
        if self.owner is None:
            msg = f"Association {self.name!r} is not bound to a schema"
            raise InvalidAssociationError(msg)
        from crecto.domain.schema import snake_case

        return f"{snake_case(self.owner.__name__)}_id"

    def through_association(self) -> HasMany:
        """The owner's join association named by ``through``."""
        assert self.owner is not None
        assoc = self.owner.associations().get(self.through or "")
        if not isinstance(assoc, HasMany) or assoc.through is not None:
            msg = (
                f"{self.owner.__name__}.{self.name}: through={self.through!r} must name "
                "a direct has_many association"
            )
            raise InvalidAssociationError(msg)
        return assoc

    def through_target_association(self) -> BelongsTo:
        """The join schema's belongs_to that points at this association's target."""
        join_model = self.through_association().target
        target = self.target
        for assoc in join_model.associations().values():
            if isinstance(assoc, BelongsTo) and assoc.target is target:
                return assoc
        msg = f"{join_model.__name__} has no belongs_to association pointing at {target.__name__}"
        raise InvalidAssociationError(msg)


class HasOne(HasMany):
    """Like :class:`HasMany`, but loads a single row (or ``None``)."""

    kind = "has_one"
    many = False

    def __init__(
        self,
        target: str | type[Model],
        *,
        foreign_key: str | None = None,
        dependent: Dependent | str | None = None,
    ) -> None:
        super().__init__(target, foreign_key=foreign_key, dependent=dependent)
