"""QueryService — ad-hoc queries against one schema from the command line."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from crecto.domain.query import Query
from crecto.domain.types import CastError
from crecto.errors import InvalidOptionError
from crecto.services.base import BaseService
from crecto.services.models import resolve_model
from crecto.services.result import ServiceResult

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path


class QueryService(BaseService):
    """Build a :class:`Query` from string options and run or compile it."""

    def run(
        self,
        target: str,
        *,
        where: Mapping[str, str] | None = None,
        order_by: Sequence[str] = (),
        limit: int | None = None,
        sql_only: bool = False,
        search_path: Path | None = None,
    ) -> ServiceResult:
        """Query the schema named by *target* (``MODULE:Model``).

        *where* values are strings cast through the field's type; the
        literal ``null`` matches ``NULL``. With *sql_only* the compiled
        statement is returned instead of rows.
        """
        op = "query"
        try:
            model = resolve_model(target, search_path=search_path)
        except (ImportError, InvalidOptionError) as exc:
            return self._failure(op, "INVALID_MODEL", str(exc), target=target)

        fields = model.persisted_fields()
        criteria: dict[str, Any] = {}
        for name, raw in (where or {}).items():
            field = fields.get(name)
            if field is None:
                return self._failure(
                    op, "INVALID_FIELD", f"{model.__name__} has no field {name!r}", field=name
                )
            if raw.lower() == "null":
                criteria[name] = None
                continue
            try:
                criteria[name] = field.cast(raw)
            except CastError as exc:
                return self._failure(op, "INVALID_VALUE", str(exc), field=name, value=raw)

        try:
            query = Query().where(**criteria).order_by(*order_by)
            if limit is not None:
                query = query.limit(limit)
            if sql_only:
                stmt = self._repo.compiler.select(model, query)
                compiled = stmt.compile(dialect=self._repo.engine.dialect)
                return ServiceResult(
                    ok=True,
                    op=op,
                    data={"model": model.__name__, "sql": str(compiled), "params": compiled.params},
                )
            rows = self._repo.all(model, query)
        except (InvalidOptionError, ValueError) as exc:
            return self._failure(op, "INVALID_QUERY", str(exc))
        except SQLAlchemyError as exc:
            return self._failure(op, "QUERY_FAILED", str(exc))

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "model": model.__name__,
                "table": model.__tablename__,
                "count": len(rows),
                "rows": [row.to_dict() for row in rows],
            },
        )
