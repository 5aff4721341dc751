"""PostgreSQL adapter (psycopg 3).

Reads inserted rows back with ``RETURNING`` in the same round trip and
supports ``DISTINCT ON (...)``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql

from crecto.infrastructure.adapters.base import Adapter

if TYPE_CHECKING:
    from sqlalchemy import Connection, Select, Table
    from sqlalchemy.sql.elements import ColumnElement


class PostgresAdapter(Adapter):
    name = "postgres"
    drivername = "postgresql+psycopg"
    version_sql = "SHOW server_version"

    def insert_row(
        self,
        conn: Connection,
        table: Table,
        values: Mapping[str, Any],
    ) -> Mapping[str, Any]:
        stmt = insert(table).values(**values).returning(*table.c)
        return dict(conn.execute(stmt).mappings().one())

    def apply_distinct(
        self, stmt: Select[Any], columns: Sequence[ColumnElement[Any]]
    ) -> Select[Any]:
        if columns and hasattr(postgresql, "distinct_on"):
            return stmt.ext(postgresql.distinct_on(*columns))
        if columns:
            # SQLAlchemy 2.0 spells DISTINCT ON as distinct() with columns.
            return stmt.distinct(*columns)
        return stmt.distinct()
