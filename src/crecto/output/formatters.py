"""Rich/JSON rendering of ServiceResult.

Human mode prints an ``OK: <op>`` / ``ERROR: <op>`` headline followed by
key/value pairs; query rows and table descriptions render as Rich tables.
``--json`` dumps the ServiceResult model unchanged.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from crecto.output.console import create_console, get_output

if TYPE_CHECKING:
    from rich.console import Console

    from crecto.services.result import ServiceResult


def _cell(value: Any) -> Text:
    if value is None:
        return Text("NULL", style="crecto.null")
    if isinstance(value, (dict, list)):
        return Text(_json.dumps(value, separators=(",", ":"), default=str))
    return Text(str(value))


def _print_rows(console: Console, rows: list[dict[str, Any]]) -> None:
    if not rows:
        console.print(Text("  (no rows)", style="crecto.key"))
        return
    table = Table(show_edge=False, header_style="crecto.model")
    columns = list(rows[0])
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(_cell(row.get(column)) for column in columns))
    console.print(table)


def _print_descriptions(console: Console, descriptions: list[dict[str, Any]]) -> None:
    for entry in descriptions:
        console.print(
            Text.assemble((entry["model"], "crecto.model"), " ", (f"({entry['table']})", "dim"))
        )
        table = Table(show_edge=False, header_style="crecto.key")
        for heading in ("column", "type", "pk", "nullable", "unique", "index"):
            table.add_column(heading)
        for column in entry["columns"]:
            table.add_row(
                column["name"],
                column["type"],
                "yes" if column["primary_key"] else "",
                "yes" if column["nullable"] else "",
                "yes" if column["unique"] else "",
                "yes" if column["index"] else "",
            )
        console.print(table)
        for assoc in entry["associations"]:
            line = Text.assemble("  ", (assoc["kind"], "crecto.key"), f" {assoc['name']}: ")
            line.append(assoc["via"])
            console.print(line)


def format_result(result: ServiceResult, *, json_output: bool = False) -> str:
    """Format a ServiceResult for display.

    Args:
        result: The service result to format.
        json_output: If True, return JSON; otherwise return human-readable text.
    """
    if json_output:
        return result.model_dump_json(indent=2)

    console = create_console()
    if not result.ok:
        message = result.error.message if result.error else "Unknown error"
        console.print(Text.assemble(("ERROR", "crecto.error"), f": {result.op} - {message}"))
        return get_output(console).rstrip("\n")

    console.print(Text.assemble(("OK", "crecto.ok"), ": ", (result.op, "crecto.op")))
    data = dict(result.data)
    rows = data.pop("rows", None)
    descriptions = data.pop("tables", None) if result.op == "db_tables" else None
    for key, value in data.items():
        console.print(Text.assemble("  ", (key, "crecto.key"), ": ", _cell(value)))
    if rows is not None:
        _print_rows(console, rows)
    if descriptions is not None:
        _print_descriptions(console, descriptions)
    return get_output(console).rstrip("\n")
