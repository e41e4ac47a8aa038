"""Output formatting for CLI commands."""

from __future__ import annotations

import json
import sys
from enum import Enum
from typing import Any

import httpx
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    RAW = "raw"


def print_output(
    data: list[dict[str, Any]] | dict[str, Any],
    fmt: OutputFormat = OutputFormat.TABLE,
    title: str | None = None,
) -> None:
    """Print data in the requested format. RAW behaves like JSON for dicts."""
    if fmt == OutputFormat.TABLE:
        print_table(data, title)
    else:
        print_json(data)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def print_table(
    data: list[dict[str, Any]] | dict[str, Any],
    title: str | None = None,
) -> None:
    """Print data as a Rich table, columns taken from the first row."""
    if isinstance(data, dict):
        data = [data]

    if not data:
        console.print("[dim]No results.[/dim]")
        return

    columns = list(data[0].keys())
    table = Table(title=title, show_lines=False)
    for col in columns:
        table.add_column(col, overflow="fold")

    for row in data:
        table.add_row(*[_cell(row.get(col, "")) for col in columns])

    console.print(table)


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def print_response(response: httpx.Response, fmt: OutputFormat = OutputFormat.JSON) -> None:
    """Print an API response body. Status goes to stderr so stdout stays parseable."""
    console.print(f"[dim]HTTP {response.status_code}[/dim]")

    if fmt == OutputFormat.RAW:
        sys.stdout.write(response.text)
        sys.stdout.write("\n")
        return

    try:
        data = response.json()
    except ValueError:
        sys.stdout.write(response.text)
        sys.stdout.write("\n")
        return

    rows = data if isinstance(data, list) else [data]
    if fmt == OutputFormat.TABLE and all(isinstance(row, dict) for row in rows):
        print_table(rows)
    else:
        print_json(data)
