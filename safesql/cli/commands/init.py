"""Configuration initialization command."""

from __future__ import annotations

from pathlib import Path

import click

from safesql.cli.utils import console
from safesql.config import create_sample_config


@click.command(name="init")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("safesql.yaml"),
    show_default=True,
    help="Where to write the sample configuration",
)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init_command(output: Path, force: bool) -> None:
    """Initialize a sample SafeSQL configuration file."""
    if output.exists() and not force:
        console.print(f"[yellow]{output} already exists, use --force to overwrite[/yellow]")
        raise SystemExit(1)
    output.parent.mkdir(parents=True, exist_ok=True)
    create_sample_config(output)
    console.print(f"[green]Created {output}[/green]")
