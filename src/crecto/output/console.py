"""Rich Console factory and theme for crecto output.

Consoles render into a StringIO buffer so formatters keep a plain
``format_result() -> str`` contract. Rich disables color codes on its own
when the buffer is not a terminal (tests, pipes).
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

CRECTO_THEME = Theme(
    {
        "crecto.ok": "bold green",
        "crecto.error": "bold red",
        "crecto.warning": "bold yellow",
        "crecto.op": "bold cyan",
        "crecto.key": "dim",
        "crecto.model": "bold",
        "crecto.pk": "bold blue",
        "crecto.null": "dim italic",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes.
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=CRECTO_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()
