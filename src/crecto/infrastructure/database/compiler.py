"""Compile domain queries into SQLAlchemy Core statements.

The compiler is the only place that knows how a :class:`Query` maps onto
tables and columns. Association joins are resolved through schema
metadata. A raw join string switches the statement into literal mode:
the FROM clause and every column reference are rendered as text, because
SQLAlchemy cannot attach a column to a table it only sees as SQL text.
"""

from __future__ import annotations

import itertools
import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    and_,
    bindparam,
    delete,
    false,
    func,
    literal_column,
    or_,
    select,
    text,
    true,
    update,
)

from crecto.domain.associations import Association, BelongsTo, HasMany
from crecto.domain.query import Condition, Fragment, Group, Query
from crecto.errors import InvalidOptionError
from crecto.infrastructure.database.tables import table_for

if TYPE_CHECKING:
    from sqlalchemy import Delete, Select, Table, Update
    from sqlalchemy.sql.elements import ColumnElement, TextClause
    from sqlalchemy.sql.selectable import FromClause

    from crecto.domain.query import Clause
    from crecto.domain.schema import Model
    from crecto.infrastructure.adapters.base import Adapter

AGGREGATES: dict[str, Callable[..., Any]] = {
    "avg": func.avg,
    "count": func.count,
    "max": func.max,
    "min": func.min,
    "sum": func.sum,
}

_PLACEHOLDER = re.compile(r"\?")


def bind_placeholders(
    sql: str, params: Sequence[Any], counter: Iterator[int] | None = None
) -> TextClause:
    """Rewrite ``?`` placeholders in *sql* as bound parameters, in order.

    List, tuple and set values expand to one parameter per element, so
    ``"id IN ?"`` with ``[[1, 2]]`` works. Raises ``InvalidOptionError``
    when the placeholder count and *params* disagree.
    """
    counter = counter if counter is not None else itertools.count()
    names: list[str] = []

    def _replace(_match: re.Match[str]) -> str:
        name = f"crecto_p{next(counter)}"
        names.append(name)
        return f":{name}"

    rendered = _PLACEHOLDER.sub(_replace, sql)
    if len(names) != len(params):
        msg = f"{sql!r} has {len(names)} placeholder(s) but {len(params)} param(s) were given"
        raise InvalidOptionError(msg)
    binds = []
    for name, value in zip(names, params, strict=True):
        if isinstance(value, (list, tuple, set, frozenset)):
            binds.append(bindparam(name, list(value), expanding=True))
        else:
            binds.append(bindparam(name, value))
    return text(rendered).bindparams(*binds)


class _Scope:
    """Tables visible to one statement and how to reference their columns."""

    def __init__(self, model: type[Model], query: Query) -> None:
        self.model = model
        self.table = table_for(model)
        self.literal = any(j.raw is not None for j in query.joins)
        self.tables: dict[str, Table] = {self.table.name: self.table}
        self.models: dict[str, type[Model]] = {self.table.name: model}
        self._params = itertools.count()
        self.from_clause = self._build_from(query)

    # --- FROM ---------------------------------------------------------

    def _build_from(self, query: Query) -> FromClause | Any:
        if self.literal:
            parts = [self.table.name]
            for join in query.joins:
                if join.raw is not None:
                    parts.append(join.raw)
                else:
                    assert join.association is not None
                    for target, (left, right) in self._join_path(join.association):
                        parts.append(f"INNER JOIN {target.name} ON {left} = {right}")
            return text(" ".join(parts))

        from_clause: Any = self.table
        for join in query.joins:
            assert join.association is not None
            for target, (left, right) in self._join_path(join.association):
                on = self._bound(left) == self._bound(right)
                from_clause = from_clause.join(target, on)
        return from_clause

    def _join_path(self, name: str) -> list[tuple[Table, tuple[str, str]]]:
        """Tables to join for association *name*, with qualified ON columns."""
        assoc = self.model.association(name)
        owner = self.table
        target_model = assoc.target
        target = self._register(target_model)
        target_pk = target_model.primary_key_field()
        owner_pk = self.model.primary_key_field()

        if isinstance(assoc, BelongsTo):
            return [(target, (f"{owner.name}.{assoc.foreign_key}", f"{target.name}.{target_pk}"))]
        assert isinstance(assoc, HasMany)
        if assoc.through is None:
            return [(target, (f"{target.name}.{assoc.foreign_key}", f"{owner.name}.{owner_pk}"))]

        via = assoc.through_association()
        hop = assoc.through_target_association()
        join_table = self._register(via.target)
        return [
            (join_table, (f"{join_table.name}.{via.foreign_key}", f"{owner.name}.{owner_pk}")),
            (target, (f"{target.name}.{target_pk}", f"{join_table.name}.{hop.foreign_key}")),
        ]

    def _register(self, model: type[Model]) -> Table:
        table = table_for(model)
        self.tables[table.name] = table
        self.models[table.name] = model
        return table

    def _bound(self, qualified: str) -> ColumnElement[Any]:
        table_name, column = qualified.split(".", 1)
        return self.tables[table_name].c[column]

    # --- Columns ------------------------------------------------------

    def resolve(self, name: str) -> tuple[str, str]:
        """``"title"`` or ``"posts.title"`` -> ``(table_name, column_name)``."""
        if "." in name:
            prefix, column = name.split(".", 1)
        else:
            prefix, column = self.table.name, name
        table = self.tables.get(prefix)
        if table is None:
            assoc = self.model.associations().get(prefix)
            if assoc is not None and table_for(assoc.target).name in self.tables:
                table = table_for(assoc.target)
        if table is None:
            msg = f"{name!r} references a table that is not part of the query"
            raise InvalidOptionError(msg)
        if column not in table.c:
            msg = f"{table.name} has no column {column!r}"
            raise InvalidOptionError(msg)
        return table.name, column

    def column(self, name: str) -> ColumnElement[Any]:
        table_name, column = self.resolve(name)
        if self.literal:
            return literal_column(f"{table_name}.{column}")
        return self.tables[table_name].c[column]

    def to_db(self, name: str, value: Any) -> Any:
        table_name, column = self.resolve(name)
        field = self.models[table_name].fields().get(column)
        return field.to_db(value) if field is not None else value

    def own_columns(self) -> list[ColumnElement[Any]]:
        if self.literal:
            return [
                literal_column(f"{self.table.name}.{c.name}").label(c.name) for c in self.table.c
            ]
        return list(self.table.c)

    # --- WHERE --------------------------------------------------------

    def condition(self, clause: Clause) -> ColumnElement[bool]:
        if isinstance(clause, Condition):
            return self._compare(clause)
        if isinstance(clause, Fragment):
            return self._fragment(clause)
        if isinstance(clause, Group):
            parts = [self.condition(c) for c in clause.clauses]
            if not parts:
                return true()
            return and_(*parts) if clause.op == "and" else or_(*parts)
        msg = f"Unsupported clause {clause!r}"
        raise InvalidOptionError(msg)

    def _compare(self, clause: Condition) -> ColumnElement[bool]:
        column = self.column(clause.field)
        value = clause.value
        if value is None:
            return column.is_(None)
        if isinstance(value, (list, tuple, set, frozenset)):
            if not value:
                return false()
            return column.in_([self.to_db(clause.field, v) for v in value])
        return column == self.to_db(clause.field, value)

    def _fragment(self, clause: Fragment) -> Any:
        return bind_placeholders(f"({clause.sql})", clause.params, self._params)


class QueryCompiler:
    """Turns ``(schema, Query)`` pairs into executable statements."""

    def __init__(self, adapter: Adapter) -> None:
        self._adapter = adapter

    def select(self, model: type[Model], query: Query) -> Select[Any]:
        scope = _Scope(model, query)
        if query.selects:
            columns = [scope.column(name).label(name.rsplit(".", 1)[-1]) for name in query.selects]
        else:
            columns = scope.own_columns()

        stmt = select(*columns).select_from(scope.from_clause)
        stmt = self._apply_where(stmt, scope, query)

        if query.group_bys:
            stmt = stmt.group_by(*(scope.column(name) for name in query.group_bys))
        if query.is_distinct:
            stmt = self._adapter.apply_distinct(
                stmt, [scope.column(name) for name in query.distinct_fields]
            )
        for order in query.order_bys:
            if order.raw is not None:
                stmt = stmt.order_by(text(order.raw))
            else:
                assert order.field is not None
                column = scope.column(order.field)
                stmt = stmt.order_by(column.desc() if order.descending else column.asc())
        if query.limit_value is not None:
            stmt = stmt.limit(query.limit_value)
        if query.offset_value is not None:
            stmt = stmt.offset(query.offset_value)
        return stmt

    def select_primary_keys(self, model: type[Model], query: Query) -> Select[Any]:
        """Primary keys of the rows *query* matches (paging included)."""
        scope = _Scope(model, query)
        pk = scope.column(model.primary_key_field()).label("pk")
        stmt = select(pk).select_from(scope.from_clause)
        stmt = self._apply_where(stmt, scope, query)
        if query.is_distinct or query.joins:
            stmt = stmt.distinct()
        if query.limit_value is not None:
            stmt = stmt.limit(query.limit_value)
        if query.offset_value is not None:
            stmt = stmt.offset(query.offset_value)
        return stmt

    def aggregate(self, model: type[Model], op: str, field: str, query: Query) -> Select[Any]:
        fn = AGGREGATES.get(op.lower())
        if fn is None:
            msg = f"Unsupported aggregate {op!r}. Expected one of {sorted(AGGREGATES)}"
            raise InvalidOptionError(msg)
        scope = _Scope(model, query)
        stmt = select(fn(scope.column(field))).select_from(scope.from_clause)
        return self._apply_where(stmt, scope, query)

    def update_all(self, model: type[Model], query: Query, values: Mapping[str, Any]) -> Update:
        table = table_for(model)
        fields = model.persisted_fields()
        unknown = set(values) - set(fields)
        if unknown:
            msg = f"{model.__name__} has no field(s) {sorted(unknown)}"
            raise InvalidOptionError(msg)
        converted = {name: fields[name].to_db(value) for name, value in values.items()}
        stmt = update(table).values(**converted)
        restriction = self._restriction(model, query)
        return stmt.where(restriction) if restriction is not None else stmt

    def delete_all(self, model: type[Model], query: Query) -> Delete:
        stmt = delete(table_for(model))
        restriction = self._restriction(model, query)
        return stmt.where(restriction) if restriction is not None else stmt

    # ------------------------------------------------------------------

    def _apply_where(self, stmt: Select[Any], scope: _Scope, query: Query) -> Select[Any]:
        clause = query.where_clause()
        if clause is not None:
            stmt = stmt.where(scope.condition(clause))
        return stmt

    def _restriction(self, model: type[Model], query: Query) -> ColumnElement[bool] | None:
        """WHERE for a bulk write; joined queries go through a derived table."""
        query = query.without_preloads().without_paging()
        if not query.joins:
            clause = query.where_clause()
            return _Scope(model, query).condition(clause) if clause is not None else None
        table = table_for(model)
        matching = self.select_primary_keys(model, query).subquery("crecto_matching")
        pk = table.c[model.primary_key_field()]
        return pk.in_(select(matching.c.pk))


def association_condition(assoc: Association) -> str:
    """Human-readable description of how *assoc* links two tables."""
    assert assoc.owner is not None
    if isinstance(assoc, BelongsTo):
        return f"{assoc.owner.__tablename__}.{assoc.foreign_key} -> {assoc.target.__tablename__}"
    assert isinstance(assoc, HasMany)
    if assoc.through:
        return f"{assoc.owner.__tablename__} -> {assoc.through} -> {assoc.target.__tablename__}"
    return f"{assoc.target.__tablename__}.{assoc.foreign_key} -> {assoc.owner.__tablename__}"
