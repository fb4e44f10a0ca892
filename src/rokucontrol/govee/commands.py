"""Table-driven Govee command envelopes for the LAN and Cloud APIs."""

from __future__ import annotations

import json
import math
from collections.abc import Callable, Mapping
from typing import Any, NamedTuple

from rokucontrol.errors import InputError

from .overrides import normalize_power

MIN_BRIGHTNESS = 1
MAX_BRIGHTNESS = 100
MIN_KELVIN = 2000
MAX_KELVIN = 9000

RGB = tuple[int, int, int]

WARM_WHITE: RGB = (255, 230, 200)
OCEAN_BLUE: RGB = (120, 180, 255)
SUNSET_GLOW: RGB = (255, 140, 90)

PRESETS: dict[str, RGB] = {
    "warm_white": WARM_WHITE,
    "ocean_blue": OCEAN_BLUE,
    "sunset_glow": SUNSET_GLOW,
}


def _number(value: Any, what: str) -> float:
    if isinstance(value, bool):
        raise InputError(f"Invalid {what}: {value!r}")
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError) as exc:
        raise InputError(f"Invalid {what}: {value!r}") from exc
    if not math.isfinite(number):
        raise InputError(f"Invalid {what}: {value!r}")
    return number


def clamp(value: Any, low: int, high: int, what: str = "value") -> int:
    return max(low, min(high, round(_number(value, what))))


def parse_rgb(value: Any) -> RGB:
    """Accept ``(r, g, b)``, a mapping with ``r|red`` keys, or an ``"r,g,b"`` string."""
    if isinstance(value, str):
        parts = [part.strip() for part in value.split(",")]
        if len(parts) != 3:
            raise InputError(f"Invalid RGB value: {value!r}")
        channels: list[Any] = parts
    elif isinstance(value, Mapping):
        channels = [
            value.get("r", value.get("red", 255)),
            value.get("g", value.get("green", 255)),
            value.get("b", value.get("blue", 255)),
        ]
    elif isinstance(value, (list, tuple)) and len(value) >= 1:
        channels = [value[0], value[1] if len(value) > 1 else 0, value[2] if len(value) > 2 else 0]
    else:
        raise InputError(f"Invalid RGB value: {value!r}")

    r, g, b = (clamp(channel, 0, 255, "color channel") for channel in channels)
    return r, g, b


def _turn(value: Any) -> dict[str, Any]:
    power = normalize_power(value)
    if power == "toggle":
        raise InputError("Toggle must be resolved to on or off before sending")
    return {"value": 1 if power else 0}


def _brightness(value: Any) -> dict[str, Any]:
    return {"value": clamp(value, MIN_BRIGHTNESS, MAX_BRIGHTNESS, "brightness")}


def _color(value: Any) -> dict[str, Any]:
    r, g, b = parse_rgb(value)
    return {"r": r, "g": g, "b": b}


def _color_tem(value: Any) -> dict[str, Any]:
    return {"value": clamp(value, MIN_KELVIN, MAX_KELVIN, "color temperature")}


def _scene(value: Any) -> dict[str, Any]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return {"value": int(value)}
    text = str(value).strip()
    if not text:
        raise InputError("Missing scene")
    try:
        return {"value": int(text)}
    except ValueError:
        return {"value": text}


class Command(NamedTuple):
    build: Callable[[Any], dict[str, Any]]
    cloud_only: bool = False


COMMANDS: dict[str, Command] = {
    "turn": Command(_turn),
    "brightness": Command(_brightness),
    "color": Command(_color),
    "colorTem": Command(_color_tem),
    "scene": Command(_scene, cloud_only=True),
}


def _lookup(cmd: str) -> Command:
    try:
        return COMMANDS[cmd]
    except KeyError:
        raise InputError(f"Unknown Govee command: {cmd!r}") from None


def build_lan_envelope(cmd: str, value: Any) -> dict[str, Any]:
    """``{"msg": {"cmd", "data"}}`` for the LAN API."""
    command = _lookup(cmd)
    if command.cloud_only:
        raise InputError(f"{cmd} is only available through the Govee cloud")
    data = command.build(value)
    if cmd == "colorTem":
        # LAN firmware takes color temperature through colorwc
        return {
            "msg": {
                "cmd": "colorwc",
                "data": {"color": {"r": 0, "g": 0, "b": 0}, "colorTemInKelvin": data["value"]},
            }
        }
    return {"msg": {"cmd": cmd, "data": data}}


def encode_lan_envelope(cmd: str, value: Any) -> str:
    return json.dumps(build_lan_envelope(cmd, value), separators=(",", ":"))


def build_cloud_command(cmd: str, value: Any) -> dict[str, Any]:
    """``{"name", "value"}`` for the Cloud control endpoint."""
    data = _lookup(cmd).build(value)
    if cmd == "turn":
        return {"name": "turn", "value": "on" if data["value"] else "off"}
    if cmd == "color":
        return {"name": "color", "value": data}
    return {"name": cmd, "value": data["value"]}
