"""Immutable, composable query builder.

Every method returns a new :class:`Query`, so partial queries can be shared
and extended freely::

    active = Query().where(active=True)
    recent = active.order_by("-created_at").limit(10)
    admins = active.where("role", "admin")
    seniors = active.where("age > ?", [65])

Where semantics: ``where`` clauses are AND-ed together. ``or_where`` clauses
are OR-ed together and the resulting group is AND-ed with the ``where``
clauses, i.e. ``W1 AND W2 AND (O1 OR O2)``. ``Query.and_`` / ``Query.or_``
build explicit groups out of whole queries.

Values: ``None`` compiles to ``IS NULL``; lists, tuples and sets compile to
``IN`` (an empty collection matches nothing). Raw fragments use ``?``
placeholders bound positionally from *params*.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
_ORDER = re.compile(
    r"^(?P<neg>-)?(?P<field>[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?)"
    r"(\s+(?P<dir>asc|desc))?$",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Clause types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Condition:
    """``field = value`` (or ``IS NULL`` / ``IN``, depending on *value*)."""

    field: str
    value: Any


@dataclass(frozen=True)
class Fragment:
    """Raw SQL boolean expression with ``?`` placeholders."""

    sql: str
    params: tuple[Any, ...] = ()


@dataclass(frozen=True)
class Group:
    """Nested AND/OR of clauses."""

    op: str
    clauses: tuple[Clause, ...]


Clause = Condition | Fragment | Group


@dataclass(frozen=True)
class Join:
    """Inner join through an association, or a raw ``JOIN ...`` string."""

    association: str | None = None
    raw: str | None = None


@dataclass(frozen=True)
class Preload:
    """Association path to load after the main query, optionally scoped."""

    path: str
    query: Query | None = None


@dataclass(frozen=True)
class OrderBy:
    field: str | None = None
    descending: bool = False
    raw: str | None = None


def _is_identifier(text: str) -> bool:
    return _IDENTIFIER.match(text) is not None


def _parse_clauses(args: tuple[Any, ...], kwargs: dict[str, Any]) -> list[Clause]:
    clauses: list[Clause] = []
    if args:
        if len(args) > 2 or not isinstance(args[0], str):
            msg = "where() takes (field, value), (fragment, params), (fragment,) or keywords"
            raise TypeError(msg)
        head = args[0]
        if len(args) == 2 and _is_identifier(head):
            clauses.append(Condition(head, args[1]))
        else:
            params = args[1] if len(args) == 2 else ()
            if not isinstance(params, (list, tuple)):
                params = (params,)
            expected = head.count("?")
            if expected != len(params):
                msg = f"{head!r} has {expected} placeholder(s) but got {len(params)} param(s)"
                raise ValueError(msg)
            clauses.append(Fragment(head, tuple(params)))
    clauses.extend(Condition(field, value) for field, value in kwargs.items())
    return clauses


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Query:
    """Declarative description of a SELECT against one schema."""

    selects: tuple[str, ...] = ()
    wheres: tuple[Clause, ...] = ()
    or_wheres: tuple[Clause, ...] = ()
    joins: tuple[Join, ...] = ()
    preloads: tuple[Preload, ...] = ()
    order_bys: tuple[OrderBy, ...] = ()
    group_bys: tuple[str, ...] = ()
    limit_value: int | None = None
    offset_value: int | None = None
    is_distinct: bool = False
    distinct_fields: tuple[str, ...] = ()

    def select(self, *fields: str) -> Query:
        return replace(self, selects=self.selects + tuple(fields))

    def where(self, *args: Any, **kwargs: Any) -> Query:
        return replace(self, wheres=self.wheres + tuple(_parse_clauses(args, kwargs)))

    def or_where(self, *args: Any, **kwargs: Any) -> Query:
        return replace(self, or_wheres=self.or_wheres + tuple(_parse_clauses(args, kwargs)))

    def join(self, target: str) -> Query:
        """Join an association by name, or append a raw join clause."""
        join = Join(association=target) if _is_identifier(target) else Join(raw=target)
        return replace(self, joins=self.joins + (join,))

    def preload(self, path: str, query: Query | None = None) -> Query:
        return replace(self, preloads=self.preloads + (Preload(path, query),))

    def order_by(self, *clauses: str) -> Query:
        orders: list[OrderBy] = []
        for clause in clauses:
            match = _ORDER.match(clause.strip())
            if match is None:
                orders.append(OrderBy(raw=clause))
                continue
            descending = bool(match.group("neg")) or (match.group("dir") or "").lower() == "desc"
            orders.append(OrderBy(field=match.group("field"), descending=descending))
        return replace(self, order_bys=self.order_bys + tuple(orders))

    def group_by(self, *fields: str) -> Query:
        return replace(self, group_bys=self.group_bys + tuple(fields))

    def limit(self, value: int) -> Query:
        if value < 0:
            msg = f"limit must be non-negative, got {value}"
            raise ValueError(msg)
        return replace(self, limit_value=value)

    def offset(self, value: int) -> Query:
        if value < 0:
            msg = f"offset must be non-negative, got {value}"
            raise ValueError(msg)
        return replace(self, offset_value=value)

    def distinct(self, *fields: str) -> Query:
        return replace(self, is_distinct=True, distinct_fields=tuple(fields))

    # ------------------------------------------------------------------
    # Combinators
    # ------------------------------------------------------------------

    def where_clause(self) -> Clause | None:
        """The full boolean condition of this query, or None if unconstrained."""
        parts: list[Clause] = list(self.wheres)
        if self.or_wheres:
            parts.append(Group("or", self.or_wheres))
        if not parts:
            return None
        if len(parts) == 1:
            return parts[0]
        return Group("and", tuple(parts))

    @classmethod
    def and_(cls, *queries: Query) -> Query:
        """A query whose condition is every given query's condition AND-ed."""
        return cls._combine("and", queries)

    @classmethod
    def or_(cls, *queries: Query) -> Query:
        """A query whose condition is the given queries' conditions OR-ed."""
        return cls._combine("or", queries)

    @classmethod
    def _combine(cls, op: str, queries: tuple[Query, ...]) -> Query:
        clauses = tuple(c for c in (q.where_clause() for q in queries) if c is not None)
        if not clauses:
            return cls()
        return cls(wheres=(Group(op, clauses),))

    def without_preloads(self) -> Query:
        return replace(self, preloads=())

    def without_paging(self) -> Query:
        return replace(self, limit_value=None, offset_value=None, order_bys=())
