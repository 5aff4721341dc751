"""MySQL / MariaDB adapter (PyMySQL)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from crecto.infrastructure.adapters.base import Adapter

if TYPE_CHECKING:
    from crecto.config.models import DatabaseConfig


class MySQLAdapter(Adapter):
    name = "mysql"
    drivername = "mysql+pymysql"

    def engine_options(self, config: DatabaseConfig) -> dict[str, Any]:
        options = super().engine_options(config)
        # Server closes idle connections after wait_timeout (8h default).
        options["pool_recycle"] = 3600
        return options
