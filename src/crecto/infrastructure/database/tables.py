"""SQLAlchemy Core table generation from schemas.

Every schema maps to one ``Table`` in the shared :data:`metadata`. Tables
are built lazily on first use and cached per schema class. Foreign keys are
plain indexed integer columns: referential integrity is left to migrations
so schemas can be declared in any order.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.types import TypeEngine

from crecto.domain.types import FieldType

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from crecto.domain.fields import Field
    from crecto.domain.schema import Model

metadata = MetaData()

_TABLES: dict[type[Model], Table] = {}


def _column_type(field: Field) -> TypeEngine[object]:
    match field.type:
        case FieldType.STRING:
            return String(255)
        case FieldType.TEXT:
            return Text()
        case FieldType.INTEGER:
            return Integer()
        case FieldType.BIGINT:
            # SQLite only auto-increments "INTEGER PRIMARY KEY".
            return BigInteger().with_variant(Integer(), "sqlite")
        case FieldType.FLOAT:
            return Float()
        case FieldType.BOOLEAN:
            return Boolean()
        case FieldType.DATETIME:
            return DateTime(timezone=True)
        case FieldType.JSON | FieldType.ARRAY:
            return JSON()
        case FieldType.ENUM:
            return String(64)
    msg = f"No column type for {field.type!r}"
    raise TypeError(msg)


def _build_table(model: type[Model]) -> Table:
    unique = set(model.unique_fields())
    columns = [
        Column(
            name,
            _column_type(field),
            primary_key=field.primary_key,
            autoincrement=field.autoincrement if field.primary_key else False,
            nullable=field.nullable,
            unique=name in unique or None,
            index=field.index or None,
        )
        for name, field in model.persisted_fields().items()
    ]
    existing = metadata.tables.get(model.__tablename__)
    if existing is not None:
        # Another schema class claimed this table name earlier (e.g. redefined).
        metadata.remove(existing)
        for cached_model, cached in list(_TABLES.items()):
            if cached is existing:
                del _TABLES[cached_model]
    pk_field = model.fields()[model.primary_key_field()]
    # AUTOINCREMENT: SQLite never hands out a deleted row's id again.
    return Table(
        model.__tablename__,
        metadata,
        *columns,
        sqlite_autoincrement=pk_field.autoincrement,
    )


def table_for(model: type[Model]) -> Table:
    """The SQLAlchemy table for *model*, built on first access."""
    table = _TABLES.get(model)
    if table is None:
        table = _build_table(model)
        _TABLES[model] = table
    return table


def create_tables(engine: Engine, models: Iterable[type[Model]]) -> list[str]:
    """Create missing tables for *models*. Idempotent.

    Returns the table names in creation order.
    """
    tables = [table_for(model) for model in models]
    metadata.create_all(engine, tables=tables, checkfirst=True)
    return [t.name for t in tables]


def drop_tables(engine: Engine, models: Iterable[type[Model]]) -> list[str]:
    """Drop existing tables for *models*. Idempotent."""
    tables = [table_for(model) for model in models]
    metadata.drop_all(engine, tables=list(reversed(tables)), checkfirst=True)
    return [t.name for t in tables]
