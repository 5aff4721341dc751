"""Command group: create, drop and describe schema tables."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from crecto.commands._base import CrectoGroup

if TYPE_CHECKING:
    from crecto.commands._context import AppContext

_module_option = click.option(
    "-m",
    "--module",
    "modules",
    multiple=True,
    help="Module defining schemas (repeatable). Defaults to [cli] models.",
)


@click.group(
    cls=CrectoGroup,
    examples="""\
  crecto db create -m app.models
  crecto db tables -m app.models -m app.audit
  crecto db drop""",
)
def db() -> None:
    """Manage the tables behind your schemas."""


@db.command(
    examples="""\
  crecto db create -m app.models
  crecto --log-queries db create""",
)
@_module_option
@click.pass_obj
def create(app: AppContext, modules: tuple[str, ...]) -> None:
    """Create missing tables for every schema in the given modules."""
    from crecto.services.database import DatabaseService

    svc = DatabaseService(app.repo)
    app.emit(
        svc.create_tables(app.model_modules(modules), search_path=app.settings.project_root)
    )


@db.command(
    examples="""\
  crecto db drop -m app.models""",
)
@_module_option
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def drop(app: AppContext, modules: tuple[str, ...], yes: bool) -> None:
    """Drop the tables of every schema in the given modules."""
    from crecto.services.database import DatabaseService

    if not yes:
        click.confirm("Drop tables? All rows in them are lost", abort=True, err=True)
    svc = DatabaseService(app.repo)
    app.emit(svc.drop_tables(app.model_modules(modules), search_path=app.settings.project_root))


@db.command(
    examples="""\
  crecto db tables -m app.models
  crecto --json db tables""",
)
@_module_option
@click.pass_obj
def tables(app: AppContext, modules: tuple[str, ...]) -> None:
    """Describe columns and associations of every schema."""
    from crecto.services.database import DatabaseService

    svc = DatabaseService(app.repo)
    app.emit(svc.describe(app.model_modules(modules), search_path=app.settings.project_root))
