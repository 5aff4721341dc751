"""Command: verify the configured database is reachable."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from crecto.commands._base import CrectoCommand

if TYPE_CHECKING:
    from crecto.commands._context import AppContext


@click.command(
    cls=CrectoCommand,
    examples="""\
  crecto check
  crecto --json check
  CRECTO_DATABASE__URI=postgresql+psycopg://app@localhost/app crecto check""",
)
@click.pass_obj
def check(app: AppContext) -> None:
    """Connect and report adapter, dialect and server version."""
    from crecto.services.database import DatabaseService

    app.emit(DatabaseService(app.repo).check())
