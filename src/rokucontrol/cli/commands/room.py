from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from rokucontrol.cli.common import build_engine, console, guard, run
from rokucontrol.rooms import detect_room

app = typer.Typer(no_args_is_help=True, help="Rooms and BLE proximity detection.")


def _read_scan_file(path: Path) -> list[dict]:
    try:
        with path.open("r") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in scan file: {path}\n{exc}") from exc
    if not isinstance(data, list):
        raise ValueError(f"Scan file must hold a list of readings: {path}")
    return data


@app.command("list")
def list_rooms() -> None:
    """List configured rooms and their beacons."""
    engine = build_engine()
    config = run(engine.rooms.load_config())
    if not config.rooms:
        console.print("No rooms configured.")
        return

    current = engine.rooms.current_room
    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("Room", style="green")
    table.add_column("Beacons")
    table.add_column("Devices")
    for room in config.rooms:
        marker = " [bold](current)[/bold]" if room.id == current else ""
        devices = ", ".join(f"{kind}: {len(ids)}" for kind, ids in room.devices.items())
        table.add_row(room.id, room.display_name + marker, str(len(room.beacons)), devices)
    console.print(table)
    console.print(
        f"[dim]Mode: {config.settings.detection_mode}, "
        f"auto-detect: {'on' if config.settings.auto_detect else 'off'}[/dim]"
    )


@app.command("current")
def current_room() -> None:
    """Show the current room."""
    engine = build_engine()
    run(engine.rooms.load_config())
    room_id = engine.rooms.current_room
    if not room_id:
        console.print("[dim]No room set[/dim]")
        return
    room = engine.rooms.get_room(room_id)
    console.print(room.display_name if room else room_id)


@app.command("set")
def set_room(
    room_id: Annotated[str | None, typer.Argument(help="Room id; omit to clear")] = None,
) -> None:
    """Set the current room by hand."""
    engine = build_engine()
    run(engine.rooms.load_config())
    if room_id and engine.rooms.get_room(room_id) is None:
        console.print(f"[red]✗[/red] Unknown room: {room_id}")
        raise typer.Exit(1)

    guard(engine.rooms.set_current_room, room_id, "manual")
    console.print(f"[green]✓[/green] Current room: {room_id or 'none'}")


@app.command("detect")
def detect(
    scan_file: Annotated[
        Path | None,
        typer.Option("--scan-file", help="JSON list of BLE readings to use instead of scanning"),
    ] = None,
) -> None:
    """Detect the current room from a BLE scan."""
    engine = build_engine()
    config = run(engine.rooms.load_config())

    if scan_file is None:
        room_id = run(engine.rooms.detect_room_manually())
    else:
        try:
            readings = _read_scan_file(scan_file)
        except (OSError, ValueError) as exc:
            console.print(f"[red]✗[/red] {exc}")
            raise typer.Exit(1) from exc
        room_id = detect_room(readings, config)
        if room_id:
            guard(engine.rooms.set_current_room, room_id, "manual")

    if not room_id:
        console.print("[yellow]![/yellow] No matching room found")
        raise typer.Exit(1)
    room = engine.rooms.get_room(room_id)
    console.print(f"[green]✓[/green] Detected: {room.display_name if room else room_id}")
