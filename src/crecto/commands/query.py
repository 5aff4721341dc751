"""Command: run a query against one schema."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from crecto.commands._base import CrectoCommand

if TYPE_CHECKING:
    from crecto.commands._context import AppContext


def _parse_where(
    _ctx: click.Context, _param: click.Parameter, values: tuple[str, ...]
) -> dict[str, str]:
    criteria: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            msg = f"expected FIELD=VALUE, got {item!r}"
            raise click.BadParameter(msg)
        criteria[key.strip()] = value
    return criteria


@click.command(
    cls=CrectoCommand,
    examples="""\
  crecto query app.models:User
  crecto query app.models:User --where name=alice --where active=true
  crecto query app.models:Post --order-by -created_at --limit 10
  crecto query app.models:Post --where user_id=3 --sql""",
)
@click.argument("target", metavar="MODULE:MODEL")
@click.option(
    "-w",
    "--where",
    multiple=True,
    callback=_parse_where,
    help="FIELD=VALUE equality filter (repeatable; VALUE 'null' matches NULL).",
)
@click.option(
    "-o",
    "--order-by",
    multiple=True,
    help="Sort field; prefix with '-' or suffix ' DESC' for descending (repeatable).",
)
@click.option("-n", "--limit", type=click.IntRange(min=0), default=None, help="Maximum rows.")
@click.option("--sql", "sql_only", is_flag=True, help="Print the compiled SQL instead of rows.")
@click.pass_obj
def query(
    app: AppContext,
    target: str,
    where: dict[str, str],
    order_by: tuple[str, ...],
    limit: int | None,
    sql_only: bool,
) -> None:
    """Query rows of MODULE:MODEL."""
    from crecto.services.query import QueryService

    svc = QueryService(app.repo)
    app.emit(
        svc.run(
            target,
            where=where,
            order_by=order_by,
            limit=limit,
            sql_only=sql_only,
            search_path=app.settings.project_root,
        )
    )
