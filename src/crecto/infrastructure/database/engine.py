"""Database engine construction and connection retry policy.

The adapter decides the URL, pool options and per-connection setup; this
module only glues them onto ``sqlalchemy.create_engine``. Connection
checkout is wrapped in a Tenacity policy so a database that is still
starting up (containers, failovers) does not fail the first query.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from crecto.infrastructure.adapters import adapter_for_url, get_adapter

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from crecto.config.models import DatabaseConfig
    from crecto.infrastructure.adapters.base import Adapter

logger = logging.getLogger(__name__)


def resolve_adapter(config: DatabaseConfig) -> Adapter:
    """Adapter for *config*: the URI scheme wins over the ``adapter`` name."""
    if config.uri:
        return adapter_for_url(config.uri)
    return get_adapter(config.adapter)


def create_db_engine(config: DatabaseConfig, adapter: Adapter | None = None) -> Engine:
    """Create an engine for *config* using *adapter* (resolved if omitted)."""
    adapter = adapter or resolve_adapter(config)
    url = adapter.build_url(config)
    engine = create_engine(url, **adapter.engine_options(config))
    adapter.configure_engine(engine)
    logger.debug("Created %s engine for %s", adapter.name, url.render_as_string(hide_password=True))
    return engine


def create_connect_retry_policy(attempts: int, delay_seconds: float) -> Retrying:
    """Tenacity policy retrying ``OperationalError`` on connection checkout.

    Args:
        attempts: Total attempts including the first (1 disables retrying).
        delay_seconds: Fixed pause between attempts.
    """
    return Retrying(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_fixed(delay_seconds),
        retry=retry_if_exception_type(OperationalError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
