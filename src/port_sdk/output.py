"""CLI output helpers with stdout/stderr discipline.

Primary data (API payloads, configuration tables) goes to stdout; every
diagnostic goes to stderr so piped output stays parseable. JSON is
pretty-printed through Rich when stdout is a terminal and written plain
otherwise.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

_stdout = Console()
_stderr = Console(stderr=True)


def print_json(data: Any) -> None:
    if _stdout.is_terminal:
        _stdout.print_json(data=data)
    else:
        _stdout.file.write(json.dumps(data, indent=2, default=str) + "\n")


def print_table(title: str, rows: dict[str, Any]) -> None:
    if not _stdout.is_terminal:
        for key, value in rows.items():
            _stdout.file.write(f"{key}\t{value}\n")
        return
    table = Table(title=title, show_header=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for key, value in rows.items():
        table.add_row(key, "-" if value is None else str(value))
    _stdout.print(table)


def success(message: str) -> None:
    _stderr.print(f"[green]{escape(message)}[/green]", highlight=False)


def warning(message: str) -> None:
    _stderr.print(f"[yellow]Warning:[/yellow] {escape(message)}", highlight=False)


def error(message: str) -> None:
    _stderr.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
