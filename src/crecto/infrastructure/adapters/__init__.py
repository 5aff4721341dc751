"""Backend adapters and the adapter registry."""

from __future__ import annotations

from crecto.errors import InvalidAdapterError
from crecto.infrastructure.adapters.base import Adapter
from crecto.infrastructure.adapters.mysql import MySQLAdapter
from crecto.infrastructure.adapters.postgres import PostgresAdapter
from crecto.infrastructure.adapters.sqlite import SQLiteAdapter

ADAPTERS: dict[str, type[Adapter]] = {
    "sqlite": SQLiteAdapter,
    "sqlite3": SQLiteAdapter,
    "postgres": PostgresAdapter,
    "postgresql": PostgresAdapter,
    "pg": PostgresAdapter,
    "mysql": MySQLAdapter,
    "mariadb": MySQLAdapter,
}


def get_adapter(name: str) -> Adapter:
    """Instantiate the adapter registered under *name* (case-insensitive).

    Raises:
        InvalidAdapterError: If *name* is not a known backend.
    """
    try:
        return ADAPTERS[name.strip().lower()]()
    except KeyError:
        msg = f"Unknown adapter {name!r}. Expected one of {sorted(set(ADAPTERS))}"
        raise InvalidAdapterError(msg) from None


def adapter_for_url(url: str) -> Adapter:
    """Pick the adapter from a URL scheme such as ``postgresql+psycopg://``."""
    scheme = url.split(":", 1)[0]
    backend = scheme.split("+", 1)[0]
    return get_adapter(backend)


__all__ = [
    "ADAPTERS",
    "Adapter",
    "MySQLAdapter",
    "PostgresAdapter",
    "SQLiteAdapter",
    "adapter_for_url",
    "get_adapter",
]
