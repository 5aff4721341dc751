"""DatabaseService — connectivity check and table management."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from crecto.infrastructure.database import table_for
from crecto.infrastructure.database.compiler import association_condition
from crecto.services.base import BaseService
from crecto.services.models import import_models
from crecto.services.result import ServiceResult

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from crecto.domain.schema import Model


class DatabaseService(BaseService):
    """Connection check plus create/drop/describe for schema tables."""

    def check(self) -> ServiceResult:
        """Connect and report adapter, dialect and server version."""
        repo = self._repo
        try:
            version = repo.server_version()
        except OperationalError as exc:
            return self._failure(
                "check",
                "CONNECTION_FAILED",
                f"Could not connect: {exc.orig or exc}",
                adapter=repo.adapter.name,
            )
        return ServiceResult(
            ok=True,
            op="check",
            data={
                "adapter": repo.adapter.name,
                "dialect": repo.engine.dialect.name,
                "driver": repo.engine.dialect.driver,
                "url": repo.engine.url.render_as_string(hide_password=True),
                "server_version": version,
            },
        )

    def create_tables(
        self, modules: Sequence[str], *, search_path: Path | None = None
    ) -> ServiceResult:
        """Create the tables of every schema defined in *modules*."""
        models = self._load("db_create", modules, search_path)
        if isinstance(models, ServiceResult):
            return models
        try:
            names = self._repo.create_tables(*models)
        except SQLAlchemyError as exc:
            return self._failure("db_create", "DDL_FAILED", str(exc))
        return ServiceResult(
            ok=True, op="db_create", data={"tables": names, "count": len(names)}
        )

    def drop_tables(
        self, modules: Sequence[str], *, search_path: Path | None = None
    ) -> ServiceResult:
        """Drop the tables of every schema defined in *modules*."""
        models = self._load("db_drop", modules, search_path)
        if isinstance(models, ServiceResult):
            return models
        try:
            names = self._repo.drop_tables(*models)
        except SQLAlchemyError as exc:
            return self._failure("db_drop", "DDL_FAILED", str(exc))
        return ServiceResult(ok=True, op="db_drop", data={"tables": names, "count": len(names)})

    def describe(
        self, modules: Sequence[str], *, search_path: Path | None = None
    ) -> ServiceResult:
        """Columns and associations of every schema defined in *modules*."""
        models = self._load("db_tables", modules, search_path)
        if isinstance(models, ServiceResult):
            return models
        return ServiceResult(
            ok=True,
            op="db_tables",
            data={"tables": [_describe(model) for model in models]},
        )

    # ------------------------------------------------------------------

    def _load(
        self, op: str, modules: Sequence[str], search_path: Path | None
    ) -> list[type[Model]] | ServiceResult:
        if not modules:
            return self._failure(
                op, "NO_MODULES", "No schema modules given; pass -m MODULE or set [cli] models"
            )
        try:
            models = import_models(modules, search_path=search_path)
        except ImportError as exc:
            return self._failure(op, "MODULE_NOT_FOUND", str(exc), modules=list(modules))
        if not models:
            return self._failure(
                op, "NO_MODELS", "The given modules define no schemas", modules=list(modules)
            )
        return models


def _describe(model: type[Model]) -> dict[str, Any]:
    table = table_for(model)
    columns = [
        {
            "name": column.name,
            "type": str(column.type),
            "primary_key": column.primary_key,
            "nullable": bool(column.nullable),
            "unique": bool(column.unique),
            "index": bool(column.index),
        }
        for column in table.columns
    ]
    associations = [
        {
            "name": name,
            "kind": assoc.kind,
            "target": assoc.target.__name__,
            "via": association_condition(assoc),
        }
        for name, assoc in model.associations().items()
    ]
    return {
        "model": model.__name__,
        "table": table.name,
        "columns": columns,
        "associations": associations,
    }
