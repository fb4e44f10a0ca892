from __future__ import annotations

from typing import Annotated

import typer

from rokucontrol.cli.common import console, load_settings_or_exit, resolve_config_path_or_exit
from rokucontrol.config import Settings, render_settings_toml, write_settings

app = typer.Typer(no_args_is_help=True, help="Inspect and create the config file.")


@app.command("show")
def show_config() -> None:
    """Show current configuration."""
    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    source = str(path) if exists else "defaults"
    typer.echo(f"Config source: {source}")
    typer.echo(render_settings_toml(settings))


@app.command("init")
def init_config(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config file"),
    ] = False,
) -> None:
    """Write a config file populated with the defaults."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)
    if exists and not force:
        console.print(f"[dim]Config exists:[/dim] {path}")
        return

    write_settings(Settings(), path)
    action = "Overwrote" if exists else "Created"
    console.print(f"[green]✓[/green] {action} config: {path}")
