"""Database CLI commands."""

from __future__ import annotations

import json
from typing import Optional, Tuple

import click
from rich.markup import escape
from rich.table import Table

from safesql.cli.utils import console, parse_cli_args, print_exception, rows_table
from safesql.config import load_config
from safesql.db import DatabaseRegistry
from safesql.exceptions import ConfigurationError, SafeSQLError


def _registry(ctx: click.Context) -> DatabaseRegistry:
    return DatabaseRegistry(load_config(ctx.obj.get('config')))


@click.group(name="db")
@click.pass_context
def db_group(ctx: click.Context) -> None:
    """Database connection commands."""
    pass


@db_group.command(name="ping")
@click.option("--database", "-d", help="Database to ping (default: --db or the default database)")
@click.pass_context
def ping_command(ctx: click.Context, database: Optional[str]) -> None:
    """Connect to a database and check that it answers."""
    try:
        with _registry(ctx) as registry:
            db_name = database or ctx.obj.get('db') or registry.default_database
            db = registry.get(db_name)
            alive = db.ping()
            console.print(
                f"[green]{db_name}: alive[/green]" if alive else f"[red]{db_name}: no answer[/red]"
            )
            if not alive:
                raise SystemExit(1)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    except SafeSQLError as exc:
        print_exception("Error", exc, ctx.obj.get("verbose", False))
        raise SystemExit(1) from exc


@db_group.command(name="status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Show configured databases."""
    try:
        registry = _registry(ctx)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    status_info = registry.status()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Database", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("URL", style="white")
    table.add_column("Default", style="blue")

    for db_name, conn_info in status_info['connections'].items():
        table.add_row(
            db_name,
            conn_info['type'],
            conn_info['url'],
            "✓" if conn_info['default'] else "",
        )

    console.print(table)
    console.print(f"\nTotal: {status_info['total_configured']} configured")


@db_group.command(name="query")
@click.argument("template")
@click.argument("args", nargs=-1)
@click.option("--database", "-d", help="Database to query (default: --db or the default database)")
@click.option("--raw-args", is_flag=True, help="Pass arguments as plain strings instead of decoding JSON")
@click.option("--stats", "show_stats", is_flag=True, help="Show execution statistics")
@click.pass_context
def query_command(
    ctx: click.Context,
    template: str,
    args: Tuple[str, ...],
    database: Optional[str],
    raw_args: bool,
    show_stats: bool,
) -> None:
    """Compile a placeholder template and run it."""
    output = ctx.obj.get('output', 'table')
    try:
        with _registry(ctx) as registry:
            db = registry.get(database or ctx.obj.get('db'))
            result = db.query(template, *parse_cli_args(args, as_json=not raw_args))

            if output == 'json':
                click.echo(json.dumps(result.to_dict(), default=str, indent=2))
            elif result.columns:
                console.print(rows_table(result.rows, result.columns))
                console.print(f"\n[dim]{result.row_count} row(s)[/dim]")
            else:
                console.print(f"[green]OK, {result.rows_affected} row(s) affected[/green]")

            if show_stats:
                for record in db.get_stats():
                    console.print(
                        f"[dim]{record.duration * 1000:.2f} ms, rows={record.rows}, "
                        f"retried={record.retried}: {escape(record.sql)}[/dim]"
                    )
    except ConfigurationError as exc:
        console.print(f"[red]Configuration Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    except SafeSQLError as exc:
        print_exception("Error", exc, ctx.obj.get("verbose", False))
        raise SystemExit(1) from exc
