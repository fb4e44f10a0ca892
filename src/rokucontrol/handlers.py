"""Button handlers, resolved and validated when the button config is loaded."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from rokucontrol.errors import InputError, to_control_error
from rokucontrol.govee import (
    OCEAN_BLUE,
    SUNSET_GLOW,
    WARM_WHITE,
    GoveeController,
    LanOverrides,
    normalize_power,
    parse_overrides,
    parse_rgb,
)
from rokucontrol.govee.commands import MAX_BRIGHTNESS, MIN_BRIGHTNESS, RGB, clamp
from rokucontrol.macros import MacroSequencer
from rokucontrol.models import RoutineStep
from rokucontrol.roku import RokuClient
from rokucontrol.status import StatusCallback, notify

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]
Builder = Callable[[list[Any]], Action]

ALIASES = {
    "goveeApplyBrightness": "goveeBrightness",
    "goveeSetColor": "goveeColor",
}


class ButtonConfig(BaseModel):
    model_config = {"extra": "ignore"}

    label: str = ""
    handler: str
    args: list[Any] = Field(default_factory=list)
    routine: list[dict[str, Any]] | None = None


@dataclass(frozen=True)
class BoundAction:
    """A validated handler with its arguments; awaiting it runs the command."""

    label: str
    handler: str
    run: Action
    on_status: StatusCallback | None = None

    async def __call__(self) -> Any:
        try:
            return await self.run()
        except Exception as exc:
            error = to_control_error(exc)
            notify(self.on_status, error.user_message(), "error")
            if error is exc:
                raise
            raise error from exc


def _arg(args: Sequence[Any], index: int, default: Any = None) -> Any:
    return args[index] if len(args) > index else default


def _require(args: Sequence[Any], count: int, name: str) -> None:
    if len(args) < count:
        raise InputError(f"{name} needs at least {count} argument(s), got {len(args)}")


def _check_max(args: Sequence[Any], count: int, name: str) -> None:
    if len(args) > count:
        raise InputError(f"{name} takes at most {count} argument(s), got {len(args)}")


def _unpack(args: list[Any]) -> list[Any]:
    # legacy configs pack everything into a single list argument
    if len(args) == 1 and isinstance(args[0], list):
        return list(args[0])
    return args


def _overrides(args: Sequence[Any], start: int) -> LanOverrides:
    return parse_overrides(_arg(args, start), _arg(args, start + 1))


def _color_args(args: list[Any], name: str) -> tuple[RGB, LanOverrides]:
    first = _arg(args, 0)
    if isinstance(first, (list, tuple)):
        rgb = parse_rgb(list(first[:3]))
        if len(first) > 3:
            return rgb, _overrides(first, 3)
        return rgb, _overrides(args, 1)
    if isinstance(first, Mapping):
        return parse_rgb(first), parse_overrides(first)
    if isinstance(first, str):
        return parse_rgb(first), _overrides(args, 1)
    _require(args, 3, name)
    _check_max(args, 5, name)
    return parse_rgb(args[:3]), _overrides(args, 3)


def _devices(value: Any, name: str) -> list[Any]:
    if not isinstance(value, list) or not value:
        raise InputError(f"{name} needs a non-empty device list")
    return value


class HandlerRegistry:
    """Maps handler names from button configs to bound device commands."""

    def __init__(
        self,
        roku: RokuClient,
        govee: GoveeController,
        sequencer: MacroSequencer,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._roku = roku
        self._govee = govee
        self._sequencer = sequencer
        self._on_status = on_status
        self._builders: dict[str, Builder] = {
            "sendKey": self._send_key,
            "launchApp": self._launch_app,
            "goveePower": self._govee_power,
            "goveeTogglePower": self._govee_toggle,
            "goveeBrightness": self._govee_brightness,
            "goveeColor": self._govee_color,
            "goveeWarmWhite": self._preset(WARM_WHITE),
            "goveeOceanBlue": self._preset(OCEAN_BLUE),
            "goveeSunsetGlow": self._preset(SUNSET_GLOW),
            "goveeMultiPower": self._govee_multi_power,
            "goveeMultiBrightness": self._govee_multi_brightness,
            "goveeMultiColor": self._govee_multi_color,
            "lightRoutine": self._light_routine,
            "runMacro": self._run_macro,
            "runFavoriteMacro": self._run_favorite_macro,
        }

    @property
    def names(self) -> list[str]:
        return sorted([*self._builders, *ALIASES])

    def bind(self, config: ButtonConfig | Mapping[str, Any]) -> BoundAction:
        if not isinstance(config, ButtonConfig):
            try:
                config = ButtonConfig.model_validate(config)
            except ValidationError as exc:
                raise InputError(f"Invalid button config: {exc}") from exc

        name = ALIASES.get(config.handler, config.handler)
        builder = self._builders.get(name)
        if builder is None:
            raise InputError(f"Unknown handler: {config.handler!r}")

        args = list(config.args)
        if name == "lightRoutine" and config.routine is not None:
            args = [config.routine]
        run = builder(args)
        return BoundAction(
            label=config.label or name, handler=name, run=run, on_status=self._on_status
        )

    def bind_all(self, configs: Iterable[ButtonConfig | Mapping[str, Any]]) -> list[BoundAction]:
        return [self.bind(config) for config in configs]

    # builders

    def _send_key(self, args: list[Any]) -> Action:
        _require(args, 1, "sendKey")
        _check_max(args, 1, "sendKey")
        key = args[0]
        if not isinstance(key, str) or not key.strip():
            raise InputError("sendKey needs a key name")
        return lambda: self._roku.send_key(key.strip())

    def _launch_app(self, args: list[Any]) -> Action:
        _require(args, 1, "launchApp")
        _check_max(args, 2, "launchApp")
        app_id = str(args[0]).strip()
        if not app_id:
            raise InputError("launchApp needs an app id")
        content_id = _arg(args, 1)
        return lambda: self._roku.launch_app(app_id, str(content_id) if content_id else None)

    def _govee_power(self, args: list[Any]) -> Action:
        args = _unpack(args)
        _check_max(args, 3, "goveePower")
        first = _arg(args, 0, True)
        if isinstance(first, Mapping):
            state = normalize_power(first.get("value", first.get("state", True)))
            overrides = parse_overrides(first)
        else:
            state = normalize_power(first)
            overrides = _overrides(args, 1)
        return lambda: self._govee.power(state, overrides)

    def _govee_toggle(self, args: list[Any]) -> Action:
        _check_max(args, 2, "goveeTogglePower")
        overrides = _overrides(args, 0)
        return lambda: self._govee.toggle_power(overrides)

    def _govee_brightness(self, args: list[Any]) -> Action:
        args = _unpack(args)
        _require(args, 1, "goveeBrightness")
        _check_max(args, 3, "goveeBrightness")
        first = args[0]
        if isinstance(first, Mapping):
            raw = first.get("value", first.get("level", self._govee.stored_brightness()))
            overrides = parse_overrides(first)
        else:
            raw = first
            overrides = _overrides(args, 1)
        value = clamp(raw, MIN_BRIGHTNESS, MAX_BRIGHTNESS, "brightness")
        return lambda: self._govee.set_brightness(value, overrides)

    def _govee_color(self, args: list[Any]) -> Action:
        rgb, overrides = _color_args(args, "goveeColor")
        return lambda: self._govee.set_color(rgb, overrides)

    def _preset(self, rgb: RGB) -> Builder:
        def build(args: list[Any]) -> Action:
            _check_max(args, 2, "preset")
            overrides = _overrides(args, 0)
            return lambda: self._govee.set_color(rgb, overrides)

        return build

    def _govee_multi_power(self, args: list[Any]) -> Action:
        _require(args, 2, "goveeMultiPower")
        _check_max(args, 2, "goveeMultiPower")
        state = normalize_power(args[0])
        devices = _devices(args[1], "goveeMultiPower")
        if state == "toggle":
            return lambda: self._govee.multi_toggle(devices)
        return lambda: self._govee.multi_power(state, devices)

    def _govee_multi_brightness(self, args: list[Any]) -> Action:
        _require(args, 2, "goveeMultiBrightness")
        _check_max(args, 2, "goveeMultiBrightness")
        value = clamp(args[0], MIN_BRIGHTNESS, MAX_BRIGHTNESS, "brightness")
        devices = _devices(args[1], "goveeMultiBrightness")
        return lambda: self._govee.multi_brightness(value, devices)

    def _govee_multi_color(self, args: list[Any]) -> Action:
        _require(args, 2, "goveeMultiColor")
        if len(args) == 2:
            rgb = parse_rgb(args[0])
        else:
            _check_max(args, 4, "goveeMultiColor")
            rgb = parse_rgb(args[:3])
        devices = _devices(args[-1], "goveeMultiColor")
        return lambda: self._govee.multi_color(rgb, devices)

    def _light_routine(self, args: list[Any]) -> Action:
        _require(args, 1, "lightRoutine")
        raw = args[0]
        if not isinstance(raw, list) or not raw:
            raise InputError("lightRoutine needs a non-empty list of steps")
        try:
            steps = [RoutineStep.model_validate(step) for step in raw]
        except ValidationError as exc:
            raise InputError(f"Invalid light routine: {exc}") from exc
        return lambda: self._govee.run_routine(steps)

    def _run_macro(self, args: list[Any]) -> Action:
        _require(args, 1, "runMacro")
        _check_max(args, 1, "runMacro")
        macro_id = str(args[0])
        return lambda: self._sequencer.run(macro_id)

    def _run_favorite_macro(self, args: list[Any]) -> Action:
        _check_max(args, 0, "runFavoriteMacro")
        return self._sequencer.run_favorite

