"""Rich output formatters for CLI display."""

from __future__ import annotations

import json
from enum import Flag
from typing import Any, Sequence

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def hex_address(value: int) -> str:
    return f"{value:#010x}"


def flag_names(flags: Flag) -> str:
    names = [member.name for member in type(flags) if member.value and member in flags]
    return "|".join(names) or "-"


def print_table(
    rows: Sequence[dict[str, Any]],
    title: str | None = None,
    columns: Sequence[str] | None = None,
) -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No results.[/dim]")
        return

    cols = columns or list(rows[0].keys())
    table = Table(title=title, show_lines=False)
    for col in cols:
        table.add_column(col, overflow="fold")

    for row in rows:
        table.add_row(*(str(row.get(c, "")) for c in cols))

    console.print(table)


def print_listing(title: str, lines: Sequence[str]) -> None:
    """Print a disassembly-style listing under a bold heading."""
    console.print(f"[bold cyan]{title}[/bold cyan]")
    for line in lines:
        console.print(f"  {line}", highlight=False, markup=False)


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str, indent=2))


def print_error(msg: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {msg}")


def print_warning(msg: str) -> None:
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {msg}")
