"""Rendering for the shortcut legend and credential status.

Tables go to stderr through rich; ``--output json`` writes to stdout so it
can be piped.
"""

from __future__ import annotations

import json
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table

console = Console(stderr=True)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


def print_output(
    data: list[dict[str, Any]] | dict[str, Any],
    fmt: OutputFormat = OutputFormat.TABLE,
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print rows (the legend) or a single record (token status).

    Args:
        data: A list of rows, or one record shown as field/value pairs.
        fmt: Output format (table or json).
        columns: Row columns to show in table mode. None = all.
        title: Optional title for table output.
    """
    if fmt == OutputFormat.JSON:
        print_json(data)
    else:
        print_table(data, columns, title)


def print_json(data: Any) -> None:
    """Print data as indented JSON to stdout; datetimes become strings."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def print_table(
    data: list[dict[str, Any]] | dict[str, Any],
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    if isinstance(data, dict):
        console.print(_record_table(data, title))
        return

    if not data:
        console.print("[dim]Nothing to show.[/dim]")
        return

    columns = columns or list(data[0].keys())
    table = Table(title=title)
    for col in columns:
        table.add_column(col.replace("_", " ").title(), overflow="fold")
    for row in data:
        table.add_row(*[str(row.get(col, "")) for col in columns])
    console.print(table)


def _record_table(record: dict[str, Any], title: str | None) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")
    for key, value in record.items():
        table.add_row(key.replace("_", " "), str(value))
    return table
