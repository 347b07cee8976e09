"""
Config file commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from synccore.paths import DATA_DIR_ENV, get_default_data_dir
from synccore.settings import ensure_config_file
from syncwallet.cli import app


@app.command("init-config")
def init_config(
    data_dir: Annotated[
        Path | None,
        typer.Option(
            "--data-dir",
            "-d",
            envvar=DATA_DIR_ENV,
            help="Data directory (default: ~/.wallet-sync)",
        ),
    ] = None,
) -> None:
    """Write a config file template with every setting commented out."""
    if data_dir is None:
        data_dir = get_default_data_dir()

    config_path = ensure_config_file(data_dir)
    typer.echo(f"Config file created at: {config_path}")
    typer.echo("\nAll settings are commented out by default.")
    typer.echo("Edit the file to customize your configuration.")
