"""Offline template rendering command."""

from __future__ import annotations

from typing import Tuple

import click
from rich.markup import escape

from safesql.cli.utils import console, parse_cli_args
from safesql.exceptions import TemplateError
from safesql.template import Dialect, TemplateCompiler


@click.command(name="render")
@click.argument("template")
@click.argument("args", nargs=-1)
@click.option(
    "--dialect",
    type=click.Choice([d.value for d in Dialect]),
    default=Dialect.MYSQL.value,
    show_default=True,
    help="Quoting rules to render for",
)
@click.option("--raw-args", is_flag=True, help="Pass arguments as plain strings instead of decoding JSON")
def render_command(template: str, args: Tuple[str, ...], dialect: str, raw_args: bool) -> None:
    """Render a placeholder template without touching a database.

    Arguments are decoded as JSON when possible: 5, null, [1,2], {"a": 1}.
    """
    compiler = TemplateCompiler(Dialect(dialect))
    try:
        sql = compiler.compile(template, parse_cli_args(args, as_json=not raw_args))
    except TemplateError as exc:
        console.print(f"[red]Template Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc
    click.echo(sql)
