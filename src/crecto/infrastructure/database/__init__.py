"""Engine, table generation, query compilation and logging via SQLAlchemy Core."""

from crecto.infrastructure.database.compiler import QueryCompiler
from crecto.infrastructure.database.engine import (
    create_connect_retry_policy,
    create_db_engine,
    resolve_adapter,
)
from crecto.infrastructure.database.query_log import attach_query_logger
from crecto.infrastructure.database.tables import create_tables, drop_tables, metadata, table_for

__all__ = [
    "QueryCompiler",
    "attach_query_logger",
    "create_connect_retry_policy",
    "create_db_engine",
    "create_tables",
    "drop_tables",
    "metadata",
    "resolve_adapter",
    "table_for",
]
