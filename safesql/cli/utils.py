"""Shared CLI utilities for SafeSQL."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

# Single console instance reused across CLI modules
console = Console()


def configure_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def parse_cli_args(values: Iterable[str], as_json: bool = True) -> List[Any]:
    """Turn command line values into template arguments.

    With ``as_json`` each value is decoded as JSON when possible, so ``5``
    becomes an int, ``null`` becomes None and ``[1,2]`` a list. Anything that
    is not valid JSON stays a string.
    """
    args = []
    for value in values:
        if not as_json:
            args.append(value)
            continue
        try:
            args.append(json.loads(value))
        except ValueError:
            args.append(value)
    return args


def rows_table(rows: List[dict], columns: List[str]) -> Table:
    """Render result rows as a rich table."""
    table = Table(show_header=True, header_style="bold magenta")
    for column in columns:
        table.add_column(escape(str(column)), style="cyan")
    for row in rows:
        table.add_row(*("NULL" if row.get(c) is None else escape(str(row.get(c))) for c in columns))
    return table


def print_exception(message: str, error: Exception, verbose: bool = False) -> None:
    """Render a formatted exception message.

    Args:
        message: Friendly context message to display before the exception.
        error: Original exception instance.
        verbose: When True, render the full traceback for debugging.
    """
    console.print(f"[red]{message}: {escape(str(error))}[/red]")
    if verbose:
        import traceback

        console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
