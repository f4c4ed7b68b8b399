"""Main CLI entry point for SafeSQL."""

from __future__ import annotations

import click

from safesql import __version__
from safesql.cli.commands import register_commands
from safesql.cli.commands.database import db_group
from safesql.cli.commands.init import init_command
from safesql.cli.commands.render import render_command
from safesql.cli.utils import configure_logging, console
from safesql.config import EnvironmentSettings


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--db", help="Database connection name")
@click.option("--output", type=click.Choice(["table", "json"]), default="table", help="Output format")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(
    ctx: click.Context,
    version: bool,
    config: str,
    db: str,
    output: str,
    verbose: bool,
) -> None:
    """SafeSQL - typed placeholder SQL over a self-healing connection."""
    settings = EnvironmentSettings()
    ctx.ensure_object(dict)
    ctx.obj.update(
        {
            "config": config or settings.config_file,
            "db": db,
            "output": output,
            "verbose": verbose or settings.debug,
        }
    )
    configure_logging(settings.log_level, ctx.obj["verbose"])

    if version:
        console.print(f"SafeSQL v{__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


COMMAND_REGISTRY = [
    render_command,
    db_group,
    init_command,
]

register_commands(cli, COMMAND_REGISTRY)


if __name__ == "__main__":
    cli()
