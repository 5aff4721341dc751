"""Adapter base — the backend-specific seam under the repo.

SQLAlchemy Core already renders dialect SQL and handles parameter styles,
so an adapter only owns what still differs between backends: how the
connection URL and pool are built, how a freshly inserted row is read back,
how DISTINCT is rendered, and how the server reports its version.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import insert, select, text
from sqlalchemy.engine import URL, make_url

if TYPE_CHECKING:
    from sqlalchemy import Connection, Select, Table
    from sqlalchemy.engine import Engine
    from sqlalchemy.sql.elements import ColumnElement

    from crecto.config.models import DatabaseConfig


class Adapter:
    """Default behavior shared by all backends."""

    name: ClassVar[str] = ""
    drivername: ClassVar[str] = ""
    version_sql: ClassVar[str] = "SELECT VERSION()"

    def build_url(self, config: DatabaseConfig) -> URL:
        """Connection URL from ``config.uri`` or the individual components."""
        if config.uri:
            return make_url(config.uri)
        return URL.create(
            self.drivername,
            username=config.username,
            password=config.password,
            host=config.hostname,
            port=config.port,
            database=config.database,
        )

    def engine_options(self, config: DatabaseConfig) -> dict[str, Any]:
        """Keyword arguments for ``sqlalchemy.create_engine``."""
        pool_size = max(config.initial_pool_size, 1)
        return {
            "echo": config.echo,
            "pool_size": pool_size,
            "max_overflow": max(config.max_pool_size - pool_size, 0),
            "pool_timeout": config.checkout_timeout,
            "pool_pre_ping": True,
        }

    def configure_engine(self, engine: Engine) -> None:
        """Hook for per-connection setup (PRAGMAs, session variables)."""

    def insert_row(
        self,
        conn: Connection,
        table: Table,
        values: Mapping[str, Any],
    ) -> Mapping[str, Any]:
        """Insert *values* and return the full stored row.

        Default strategy: plain INSERT, then re-select by the new primary key.
        """
        result = conn.execute(insert(table).values(**values))
        pk_column = next(iter(table.primary_key.columns))
        pk_value = values.get(pk_column.name)
        if pk_value is None:
            pk_value = result.inserted_primary_key[0]
        row = conn.execute(select(table).where(pk_column == pk_value)).mappings().one()
        return dict(row)

    def apply_distinct(
        self, stmt: Select[Any], columns: Sequence[ColumnElement[Any]]
    ) -> Select[Any]:
        return stmt.distinct()

    def server_version(self, conn: Connection) -> str:
        return str(conn.execute(text(self.version_sql)).scalar_one())
