"""AppContext — shared Click context for all commands.

Created once by the root CLI group and passed to subcommands with
``@click.pass_obj``. The Repo is built lazily so ``--help`` and
``--version`` never open a database connection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from crecto.config.logging import configure_logging
from crecto.output.formatters import format_result

if TYPE_CHECKING:
    from crecto.config.settings import CrectoSettings
    from crecto.infrastructure.repo import Repo
    from crecto.services.result import ServiceResult


class AppContext:
    """Settings, logging and the lazily created Repo for one invocation."""

    def __init__(self, settings: CrectoSettings) -> None:
        self.settings = settings
        self._repo: Repo | None = None
        configure_logging(
            verbose=settings.verbose,
            log_json=settings.log_json,
            log_queries=settings.logging.log_queries,
            log_file=settings.logging.log_file,
        )

    @property
    def repo(self) -> Repo:
        """The Repo (created on first access, with entry-point plugins loaded)."""
        if self._repo is None:
            from crecto.infrastructure.repo import Repo
            from crecto.plugins.manager import PluginManager

            pm = PluginManager()
            pm.discover_and_load()
            self._repo = Repo.from_settings(self.settings, plugin_manager=pm)
        return self._repo

    def model_modules(self, modules: tuple[str, ...]) -> list[str]:
        """``-m`` options if given, else ``[cli] models`` from crecto.toml."""
        return list(modules) if modules else list(self.settings.cli.models)

    def emit(self, result: ServiceResult) -> None:
        """Print *result*: stdout on success, stderr plus exit code 1 on failure.

        Warnings go to stderr in human mode so piped output stays clean.
        """
        output = format_result(result, json_output=self.settings.json_output)
        if result.ok:
            click.echo(output)
            if not self.settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)

    def close(self) -> None:
        if self._repo is not None:
            self._repo.close()
            self._repo = None
