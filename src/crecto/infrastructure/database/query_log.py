"""Per-statement query logging via SQLAlchemy cursor events.

Each executed statement is logged on the ``crecto.query`` logger with its
parameters and wall-clock time. Logging is cheap to leave attached: the
timing bookkeeping only runs when the logger is enabled for INFO.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event

from crecto.config.logging import QUERY_LOGGER

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

_START_KEY = "crecto_query_start"


def _enabled() -> bool:
    return logging.getLogger(QUERY_LOGGER).isEnabledFor(logging.INFO)


def attach_query_logger(engine: Engine) -> None:
    """Register cursor listeners on *engine* that log every statement."""
    log = structlog.get_logger(QUERY_LOGGER)

    @event.listens_for(engine, "before_cursor_execute")
    def _before(
        conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool
    ) -> None:
        if _enabled():
            conn.info.setdefault(_START_KEY, []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _after(
        conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool
    ) -> None:
        starts = conn.info.get(_START_KEY)
        if not starts:
            return
        elapsed_ms = (time.perf_counter() - starts.pop()) * 1000
        log.info(
            "query",
            sql=" ".join(statement.split()),
            params=_render_params(parameters),
            elapsed_ms=round(elapsed_ms, 3),
            rows=cursor.rowcount if cursor.rowcount is not None and cursor.rowcount >= 0 else None,
        )

    @event.listens_for(engine, "handle_error")
    def _on_error(context: Any) -> None:
        conn = context.connection
        if conn is not None:
            starts = conn.info.get(_START_KEY)
            if starts:
                starts.pop()
        if _enabled():
            log.warning(
                "query.failed",
                sql=" ".join(str(context.statement or "").split()),
                error=str(context.original_exception),
            )


def _render_params(parameters: Any) -> Any:
    if parameters is None:
        return None
    if isinstance(parameters, dict):
        return {str(k): _short(v) for k, v in parameters.items()}
    if isinstance(parameters, (list, tuple)):
        return [
            _render_params(p) if isinstance(p, (dict, list, tuple)) else _short(p)
            for p in parameters
        ]
    return _short(parameters)


def _short(value: Any, limit: int = 200) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    if isinstance(value, str) and len(value) > limit:
        return value[:limit] + "..."
    return value
