"""Root CLI group for crecto with global flags and command registration."""

from __future__ import annotations

from typing import Any

import click

from crecto import __version__
from crecto.commands import register_commands
from crecto.commands._context import AppContext
from crecto.config.settings import ConfigFileError, CrectoSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="crecto")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("--log-queries", is_flag=True, help="Log every SQL statement with timing.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    verbose: bool,
    log_json: bool,
    log_queries: bool,
    config_path: str | None,
) -> None:
    """crecto — database wrapper and query builder."""
    overrides: dict[str, Any] = {
        "json_output": json_output,
        "verbose": verbose,
        "log_json": log_json,
    }
    if log_queries:
        overrides["logging"] = {"log_queries": True}
    try:
        settings = CrectoSettings.load(config_path=config_path, **overrides)
    except ConfigFileError as exc:
        raise click.ClickException(str(exc)) from exc
    app = AppContext(settings)
    ctx.obj = app
    ctx.call_on_close(app.close)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
