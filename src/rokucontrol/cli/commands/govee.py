from __future__ import annotations

from typing import Annotated, Any

import typer
from rich.table import Table

from rokucontrol.cli.common import build_engine, console, guard, run
from rokucontrol.govee import PRESETS, LanOverrides, parse_rgb
from rokucontrol.models import FanOutResult

app = typer.Typer(no_args_is_help=True, help="Control Govee lights over LAN or the cloud.")

IpOption = Annotated[str | None, typer.Option("--ip", help="Device IP (defaults to saved IP)")]
PortOption = Annotated[int | None, typer.Option("--port", help="Device UDP port")]
DeviceOption = Annotated[
    list[str] | None,
    typer.Option("--device", "-d", help="Send to several devices at once (repeatable)"),
]


def _report(result: FanOutResult) -> None:
    style = "green" if not result.failures else "yellow"
    console.print(
        f"[{style}]{result.successes} succeeded, {result.failures} failed[/{style}]"
    )
    for error in result.errors:
        console.print(f"  [red]✗[/red] {error}")
    if result.failures and not result.successes:
        raise typer.Exit(1)


@app.command("set-ip")
def set_ip(
    ip: Annotated[str, typer.Argument(help="Govee device IP address")],
    port: PortOption = None,
) -> None:
    """Remember the default Govee device."""
    engine = build_engine()
    guard(engine.govee.save_settings, ip, port)
    target = guard(engine.govee.resolve_target)
    console.print(f"[green]✓[/green] Govee target saved: {target.label}")


@app.command("power")
def power(
    state: Annotated[str, typer.Argument(help="on, off or toggle")],
    ip: IpOption = None,
    port: PortOption = None,
    devices: DeviceOption = None,
) -> None:
    """Turn lights on or off."""
    engine = build_engine()
    if devices:
        _report(run(engine.govee.multi_power(state, devices)))
        return
    run(engine.govee.power(state, LanOverrides(ip, port)))


@app.command("brightness")
def brightness(
    value: Annotated[int, typer.Argument(help="Brightness 1-100")],
    ip: IpOption = None,
    port: PortOption = None,
    devices: DeviceOption = None,
) -> None:
    """Set brightness."""
    engine = build_engine()
    if devices:
        _report(run(engine.govee.multi_brightness(value, devices)))
        return
    run(engine.govee.set_brightness(value, LanOverrides(ip, port)))


@app.command("color")
def color(
    rgb: Annotated[
        list[str] | None, typer.Argument(help="R G B, or a single 'r,g,b' value")
    ] = None,
    preset: Annotated[
        str | None,
        typer.Option("--preset", help=f"One of: {', '.join(PRESETS)}"),
    ] = None,
    ip: IpOption = None,
    port: PortOption = None,
    devices: DeviceOption = None,
) -> None:
    """Set an RGB color or a named preset."""
    if preset:
        if preset not in PRESETS:
            console.print(f"[red]✗[/red] Unknown preset: {preset}")
            raise typer.Exit(1)
        value: Any = PRESETS[preset]
    elif rgb:
        value = guard(parse_rgb, ",".join(rgb))
    else:
        console.print("[red]✗[/red] Give an RGB value or --preset")
        raise typer.Exit(1)

    engine = build_engine()
    if devices:
        _report(run(engine.govee.multi_color(value, devices)))
        return
    run(engine.govee.set_color(value, LanOverrides(ip, port)))


@app.command("discover")
def discover(
    timeout_ms: Annotated[
        int | None, typer.Option("--timeout-ms", help="How long to listen for replies")
    ] = None,
) -> None:
    """Scan the LAN and record devices in the registry."""
    engine = build_engine()
    found = run(engine.govee.discover(timeout_ms))
    guard(engine.govee.registry.register_all, found)
    if not found:
        console.print("No Govee devices found. Is LAN control enabled in the Govee app?")
        return

    table = Table()
    table.add_column("IP", style="cyan")
    table.add_column("MAC", style="green")
    table.add_column("Model")
    for device in found:
        table.add_row(device.ip or "", device.mac_address or "", device.model or "")
    console.print(table)


@app.command("status")
def status(ip: IpOption = None, port: PortOption = None) -> None:
    """Query power, brightness and color from a device."""
    engine = build_engine()
    result = run(engine.govee.status(LanOverrides(ip, port)))
    power_text = {True: "on", False: "off", None: "unknown"}[result.power]
    console.print(f"Power: {power_text}")
    if result.brightness is not None:
        console.print(f"Brightness: {result.brightness}%")
    if result.color is not None:
        console.print(f"Color: RGB{result.color}")
    if result.color_temperature_k:
        console.print(f"Color temperature: {result.color_temperature_k}K")


@app.command("cloud-devices")
def cloud_devices(
    api_key: Annotated[
        str | None, typer.Option("--api-key", help="Save this Govee API key first")
    ] = None,
) -> None:
    """List devices on the Govee cloud account."""
    engine = build_engine()
    if api_key is not None:
        guard(engine.govee.cloud.save_api_key, api_key)
    devices = run(engine.govee.cloud.list_devices(refresh=True))
    if not devices:
        console.print("No cloud devices found.")
        return

    table = Table()
    table.add_column("Device", style="cyan")
    table.add_column("Model", style="green")
    table.add_column("Name")
    table.add_column("Commands")
    for device in devices:
        table.add_row(
            device.device, device.model, device.device_name, ", ".join(device.supported_commands)
        )
    console.print(table)


@app.command("registry")
def registry() -> None:
    """Show devices remembered from LAN discovery."""
    engine = build_engine()
    entries = guard(engine.govee.registry.entries)
    if not entries:
        console.print("Registry is empty. Run 'rokucontrol govee discover'.")
        return

    table = Table()
    table.add_column("MAC", style="cyan")
    table.add_column("IP", style="green")
    table.add_column("Model")
    table.add_column("Last seen")
    for entry in entries:
        last_seen = entry.last_seen.isoformat(timespec="seconds") if entry.last_seen else ""
        table.add_row(entry.mac, entry.ip or "", entry.model or "", last_seen)
    console.print(table)
