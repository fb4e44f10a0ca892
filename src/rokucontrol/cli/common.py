from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console

from rokucontrol.bridge import LocalBridge
from rokucontrol.config import (
    Settings,
    data_dir_from_settings,
    get_settings,
    resolve_config_path,
)
from rokucontrol.engine import ControlEngine
from rokucontrol.errors import ControlError
from rokucontrol.status import StatusLevel
from rokucontrol.storage import StateStore

T = TypeVar("T")

_STYLES: dict[str, str] = {
    "info": "dim",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}

console = Console()
err_console = Console(stderr=True)


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def build_store(settings: Settings, data_dir: Path | None = None) -> StateStore:
    path = data_dir or data_dir_from_settings(settings)
    return StateStore(path)


def print_status(message: str, level: StatusLevel) -> None:
    err_console.print(f"[{_STYLES.get(level, 'dim')}]{message}[/]")


def build_engine(settings: Settings | None = None) -> ControlEngine:
    settings = settings or load_settings_or_exit()
    bridge = LocalBridge(
        http_timeout=settings.roku.timeout,
        cloud_api_base=settings.govee.cloud_api_base,
        cloud_timeout=settings.govee.cloud_timeout,
    )
    return guard(
        ControlEngine.from_settings,
        settings,
        bridge=bridge,
        store=build_store(settings),
        on_status=print_status,
    )


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive a coroutine to completion, turning library errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except ControlError as exc:
        err_console.print(f"[red]✗[/red] {exc.user_message()}")
        raise typer.Exit(1) from exc
    except ValueError as exc:
        err_console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1) from exc


def guard(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a synchronous library function with the same error handling as ``run``."""
    try:
        return func(*args, **kwargs)
    except ControlError as exc:
        err_console.print(f"[red]✗[/red] {exc.user_message()}")
        raise typer.Exit(1) from exc
    except ValueError as exc:
        err_console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1) from exc
