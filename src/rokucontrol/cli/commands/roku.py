from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from rokucontrol.cli.common import build_engine, console, guard, run

app = typer.Typer(no_args_is_help=True, help="Control a Roku over ECP.")


@app.command("set-ip")
def set_ip(ip: Annotated[str, typer.Argument(help="Roku IP address")]) -> None:
    """Remember the Roku to control."""
    engine = build_engine()
    guard(engine.roku.save_ip, ip)
    console.print(f"[green]✓[/green] Roku IP saved: {ip.strip()}")


@app.command("key")
def send_key(
    keys: Annotated[list[str], typer.Argument(help="Key names, e.g. Home Select Play")],
) -> None:
    """Press one or more remote keys."""
    engine = build_engine()

    async def press() -> None:
        for key in keys:
            await engine.roku.send_key(key)

    run(press())
    console.print(f"[green]✓[/green] Sent {', '.join(keys)}")


@app.command("launch")
def launch(
    app_id: Annotated[str, typer.Argument(help="Roku channel id")],
    content_id: Annotated[
        str | None, typer.Option("--content-id", help="Deep link content id")
    ] = None,
) -> None:
    """Launch a channel."""
    engine = build_engine()
    run(engine.roku.launch_app(app_id, content_id))
    console.print(f"[green]✓[/green] Launched {app_id}")


@app.command("apps")
def list_apps() -> None:
    """List installed channels (falls back to common channels)."""
    engine = build_engine()
    apps = run(engine.roku.get_apps())
    if not apps:
        console.print("No apps found. Set the Roku IP with 'rokucontrol roku set-ip'.")
        return

    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Version")
    for item in apps:
        table.add_row(item.id, item.name, item.version or "")
    console.print(table)


@app.command("info")
def device_info() -> None:
    """Show device information."""
    engine = build_engine()
    info = run(engine.roku.get_device_info())

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for name, value in info.model_dump().items():
        if value is not None:
            table.add_row(name.replace("_", " "), str(value))
    console.print(table)


@app.command("now-playing")
def now_playing() -> None:
    """Show the active channel."""
    engine = build_engine()
    current = run(engine.roku.get_now_playing())
    if current is None:
        console.print("[dim]Nothing playing[/dim]")
        return
    console.print(f"{current.app_name} [dim]({current.app_id or 'home'})[/dim]")


@app.command("discover")
def discover(
    timeout: Annotated[
        float | None, typer.Option("--timeout", "-t", help="Search time in seconds")
    ] = None,
    save: Annotated[bool, typer.Option("--save", help="Remember the first Roku found")] = False,
) -> None:
    """Find Rokus on the local network."""
    engine = build_engine()
    devices = run(engine.roku.discover(timeout))
    if not devices:
        console.print("No Roku devices found.")
        return

    table = Table()
    table.add_column("IP", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Serial")
    for device in devices:
        table.add_row(device.ip, device.name or "", device.serial_number or "")
    console.print(table)

    if save:
        guard(engine.roku.save_ip, devices[0].ip)
        console.print(f"[green]✓[/green] Roku IP saved: {devices[0].ip}")
