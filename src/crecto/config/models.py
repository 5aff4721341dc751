"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, crecto.toml only contains
overrides. A SQLite project needs only ``[database] database = "app.db"``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

# --- crecto.toml sections ---


class DatabaseConfig(BaseModel):
    """[database] section.

    Either ``uri`` (a full SQLAlchemy URL) or the individual connection
    components are used; ``uri`` wins when both are present.
    """

    model_config = {"frozen": True}

    adapter: str = "sqlite"
    uri: str | None = None
    database: str = ":memory:"
    hostname: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    initial_pool_size: int = 1
    max_pool_size: int = 5
    checkout_timeout: float = 5.0
    retry_attempts: int = 1
    retry_delay: float = 1.0
    echo: bool = False

    @field_validator("adapter")
    @classmethod
    def _normalize_adapter(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("retry_attempts")
    @classmethod
    def _at_least_one_attempt(cls, value: int) -> int:
        if value < 1:
            msg = "retry_attempts must be >= 1"
            raise ValueError(msg)
        return value


class LoggingConfig(BaseModel):
    """[logging] section."""

    model_config = {"frozen": True}

    log_queries: bool = False
    log_file: Path | None = None


class CliConfig(BaseModel):
    """[cli] section."""

    model_config = {"frozen": True}

    models: list[str] = Field(default_factory=list)


class CrectoConfig(BaseModel):
    """Complete crecto.toml contents."""

    model_config = {"frozen": True}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cli: CliConfig = Field(default_factory=CliConfig)
