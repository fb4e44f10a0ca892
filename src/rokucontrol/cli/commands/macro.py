from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from rokucontrol.cli.common import build_engine, console, guard, run
from rokucontrol.errors import InputError
from rokucontrol.macros import describe_step, parse_launch_value
from rokucontrol.models import DelayStep, KeyStep, LaunchStep, MacroStep

app = typer.Typer(no_args_is_help=True, help="Record and play Roku macros.")


def parse_step(raw: str) -> MacroStep:
    """Parse ``key:Home``, ``delay:500`` or ``launch:12?params|label``."""
    kind, sep, value = raw.partition(":")
    kind = kind.strip().lower()
    value = value.strip()
    if not sep or not value:
        raise InputError(f"Invalid step {raw!r}, expected kind:value")

    if kind == "key":
        return KeyStep(key=value)
    if kind == "delay":
        try:
            duration = int(value)
        except ValueError:
            raise InputError(f"Invalid delay: {value!r}") from None
        if duration < 0:
            raise InputError(f"Invalid delay: {value!r}")
        return DelayStep(duration_ms=duration)
    if kind == "launch":
        launch = parse_launch_value(value)
        if not launch.app_id:
            raise InputError(f"Invalid launch step: {raw!r}")
        return LaunchStep(app_id=launch.app_id, params=launch.params, label=launch.label)
    raise InputError(f"Unknown step kind: {kind!r}")


@app.command("list")
def list_macros() -> None:
    """List saved macros."""
    engine = build_engine()
    macros = engine.macros.macros()
    if not macros:
        console.print("No macros saved. Use 'rokucontrol macro create' to add one.")
        return

    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Steps")
    table.add_column("★")
    for macro in macros:
        steps = " → ".join(describe_step(step) for step in macro.steps)
        table.add_row(macro.id, macro.name, steps, "★" if macro.favorite else "")
    console.print(table)


@app.command("create")
def create_macro(
    name: Annotated[str, typer.Argument(help="Macro name")],
    steps: Annotated[
        list[str], typer.Argument(help="Steps such as key:Home delay:500 launch:12")
    ],
    favorite: Annotated[
        bool, typer.Option("--favorite", help="Make this the favorite macro")
    ] = False,
) -> None:
    """Save a new macro."""
    engine = build_engine()
    parsed = [guard(parse_step, step) for step in steps]
    macro = guard(engine.macros.save, name, parsed, favorite)
    console.print(f"[green]✓[/green] Saved macro '{macro.name}' ({macro.id})")


@app.command("run")
def run_macro(
    macro_id: Annotated[
        str | None, typer.Argument(help="Macro id (defaults to the favorite)")
    ] = None,
) -> None:
    """Play a macro against the saved Roku."""
    engine = build_engine()
    if macro_id:
        run(engine.sequencer.run(macro_id))
    else:
        run(engine.sequencer.run_favorite())


@app.command("delete")
def delete_macro(macro_id: Annotated[str, typer.Argument(help="Macro id")]) -> None:
    """Delete a macro."""
    engine = build_engine()
    if guard(engine.macros.delete, macro_id):
        console.print(f"[green]✓[/green] Deleted macro {macro_id}")
    else:
        console.print(f"[yellow]![/yellow] Macro '{macro_id}' not found")
        raise typer.Exit(1)


@app.command("favorite")
def favorite_macro(macro_id: Annotated[str, typer.Argument(help="Macro id")]) -> None:
    """Make a macro the favorite (clears any other favorite)."""
    engine = build_engine()
    macro = guard(engine.macros.set_favorite, macro_id)
    console.print(f"[green]✓[/green] '{macro.name}' is now the favorite")
