"""SQLite adapter: file or in-memory databases via the stdlib driver."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.engine import URL
from sqlalchemy.pool import StaticPool

from crecto.infrastructure.adapters.base import Adapter

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from crecto.config.models import DatabaseConfig


class SQLiteAdapter(Adapter):
    name = "sqlite"
    drivername = "sqlite"
    version_sql = "SELECT sqlite_version()"

    def build_url(self, config: DatabaseConfig) -> URL:
        if config.uri:
            return super().build_url(config)
        return URL.create(self.drivername, database=config.database)

    def engine_options(self, config: DatabaseConfig) -> dict[str, Any]:
        options: dict[str, Any] = {"echo": config.echo}
        if self._is_memory(config):
            # One shared connection, otherwise each checkout sees an empty database.
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        return options

    def configure_engine(self, engine: Engine) -> None:
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    @staticmethod
    def _is_memory(config: DatabaseConfig) -> bool:
        if config.uri:
            return config.uri.rstrip("/") in ("sqlite:", "sqlite://") or ":memory:" in config.uri
        return config.database in ("", ":memory:")
