from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from rokucontrol.cli.common import build_store, console, guard, resolve_config_path_or_exit
from rokucontrol.config import Settings, write_settings


def register(app: typer.Typer) -> None:
    @app.command()
    def init(
        data_dir: Annotated[
            Path | None,
            typer.Option("--data-dir", "--path", help="Custom data directory"),
        ] = None,
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Overwrite existing config"),
        ] = False,
    ) -> None:
        """Initialize rokucontrol configuration and state directory."""
        config_path, config_exists = resolve_config_path_or_exit(allow_missing=True)
        if config_exists and not force:
            console.print(f"[dim]Config exists:[/dim] {config_path}")
        else:
            write_settings(Settings(), config_path)
            action = "Overwrote" if config_exists else "Created"
            console.print(f"[green]✓[/green] {action} config: {config_path}")

        store = build_store(Settings(), data_dir=data_dir)
        state_exists = store.state_path is not None and store.state_path.exists()
        guard(store.init)
        if state_exists:
            console.print(f"[dim]State exists:[/dim] {store.state_path}")
        else:
            console.print(f"[green]✓[/green] Initialized state: {store.state_path}")
