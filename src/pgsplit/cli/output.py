"""Output consoles for CLI commands.

Generated SQL goes to stdout untouched so it can be piped into psql.
Status and error messages go to stderr.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape


def sql_console() -> Console:
    """Console for generated SQL: no markup, no highlighting, no wrapping."""
    return Console(highlight=False, soft_wrap=True)


def message_console() -> Console:
    return Console(stderr=True, highlight=False, soft_wrap=True)


def print_error(console: Console, message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")


def print_info(console: Console, message: str) -> None:
    console.print(escape(message))
