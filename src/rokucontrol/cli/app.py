from __future__ import annotations

from typing import Annotated

import typer

from rokucontrol.utils.logging import LogLevel, setup_logging

from .commands import config as config_cmd
from .commands import govee as govee_cmd
from .commands import macro as macro_cmd
from .commands import roku as roku_cmd
from .commands import room as room_cmd
from .commands.init import register as register_init

app = typer.Typer(
    help="rokucontrol - Roku remote, Govee lights, macros and room detection",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config")
app.add_typer(roku_cmd.app, name="roku")
app.add_typer(govee_cmd.app, name="govee")
app.add_typer(macro_cmd.app, name="macro")
app.add_typer(room_cmd.app, name="room")

register_init(app)


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    ] = None,
) -> None:
    """rokucontrol CLI."""
    level: LogLevel | None = log_level.upper() if log_level else None  # type: ignore[assignment]
    setup_logging(level)

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"rokucontrol version {get_version('rokucontrol')}")
        raise typer.Exit()
