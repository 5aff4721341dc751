"""Subcommand modules for the crecto CLI.

register_commands() imports each command module only when the root group
is built, keeping ``crecto --help`` free of database imports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the ``db`` group and the standalone commands on the root group."""
    from crecto.commands.check import check
    from crecto.commands.db import db
    from crecto.commands.query import query

    cli.add_command(check)
    cli.add_command(db)
    cli.add_command(query)
