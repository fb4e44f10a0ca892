from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ValidationError

from rokucontrol.config import GOVEE_DEFAULT_PORT
from rokucontrol.errors import ControlError, DeviceError, InputError, to_control_error
from rokucontrol.models import (
    DeviceRegistryEntry,
    DeviceTarget,
    DiscoveredGoveeDevice,
    FanOutResult,
    GoveeStatus,
    RoutineStep,
)
from rokucontrol.status import StatusCallback, notify
from rokucontrol.storage import (
    GOVEE_BRIGHTNESS_KEY,
    GOVEE_IP_KEY,
    GOVEE_PORT_KEY,
    GOVEE_POWER_STATE_PREFIX,
    StateStore,
)

from .cloud import GoveeCloud
from .commands import (
    MAX_BRIGHTNESS,
    MIN_BRIGHTNESS,
    OCEAN_BLUE,
    PRESETS,
    RGB,
    SUNSET_GLOW,
    WARM_WHITE,
    build_cloud_command,
    build_lan_envelope,
    clamp,
    parse_rgb,
)
from .lan import GoveeLan
from .overrides import LanOverrides, coerce_port, normalize_power, parse_overrides, resolve_target
from .registry import DeviceRegistry, normalize_identifier, resolve_overrides_for_step

logger = logging.getLogger(__name__)

DEFAULT_BRIGHTNESS = 80

Sleep = Callable[[float], Awaitable[Any]]


class GoveeSettings(BaseModel):
    model_config = {"frozen": True}

    ip: str | None
    port: int
    brightness: int
    api_key: str | None


class GoveeController:
    """High level Govee operations over the LAN sender and the Cloud client."""

    def __init__(
        self,
        store: StateStore,
        lan: GoveeLan,
        cloud: GoveeCloud,
        registry: DeviceRegistry,
        *,
        default_port: int = GOVEE_DEFAULT_PORT,
        discovery_timeout_ms: int = 3000,
        sleep: Sleep = asyncio.sleep,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._store = store
        self.lan = lan
        self.cloud = cloud
        self.registry = registry
        self._default_port = default_port
        self._discovery_timeout_ms = discovery_timeout_ms
        self._sleep = sleep
        self._on_status = on_status

    # settings

    def settings(self) -> GoveeSettings:
        return GoveeSettings(
            ip=self._store.get(GOVEE_IP_KEY),
            port=coerce_port(self._store.get(GOVEE_PORT_KEY)) or self._default_port,
            brightness=self.stored_brightness(),
            api_key=self.cloud.api_key,
        )

    def save_settings(self, ip: str | None, port: Any = None) -> None:
        ip = (ip or "").strip()
        if ip:
            self._store.set(GOVEE_IP_KEY, ip)
        else:
            self._store.remove(GOVEE_IP_KEY)

        if port in (None, ""):
            self._store.remove(GOVEE_PORT_KEY)
            return
        valid = coerce_port(port)
        if valid is None:
            raise InputError(f"Invalid port: {port!r}")
        self._store.set(GOVEE_PORT_KEY, valid)

    def stored_brightness(self) -> int:
        value = self._store.get(GOVEE_BRIGHTNESS_KEY)
        if isinstance(value, int) and MIN_BRIGHTNESS <= value <= MAX_BRIGHTNESS:
            return value
        return DEFAULT_BRIGHTNESS

    def resolve_target(self, overrides: Any = None) -> DeviceTarget:
        return resolve_target(
            parse_overrides(overrides),
            stored_ip=self._store.get(GOVEE_IP_KEY),
            stored_port=self._store.get(GOVEE_PORT_KEY),
            default_port=self._default_port,
        )

    # power state bookkeeping

    @staticmethod
    def _power_key(target: DeviceTarget) -> str:
        return f"{GOVEE_POWER_STATE_PREFIX}{target.host}:{target.port}"

    @staticmethod
    def _cloud_power_key(identifier: str) -> str | None:
        normalized = normalize_identifier(identifier)
        return f"{GOVEE_POWER_STATE_PREFIX}cloud_{normalized}" if normalized else None

    def _read_state(self, key: str | None) -> bool | None:
        raw = self._store.get(key) if key else None
        if raw == "on":
            return True
        if raw == "off":
            return False
        return None

    def power_state(self, target: DeviceTarget) -> bool | None:
        return self._read_state(self._power_key(target))

    def cloud_power_state(self, identifier: str) -> bool | None:
        return self._read_state(self._cloud_power_key(identifier))

    def _remember_power(self, key: str | None, on: bool) -> None:
        if key:
            self._store.set(key, "on" if on else "off")

    # LAN commands

    async def send(self, cmd: str, value: Any, overrides: Any = None) -> DeviceTarget:
        target = self.resolve_target(overrides)
        await self.lan.send(target, build_lan_envelope(cmd, value))
        return target

    async def power(self, on: Any = True, overrides: Any = None) -> DeviceTarget:
        desired = normalize_power(on)
        if desired == "toggle":
            return await self.toggle_power(overrides)
        target = await self.send("turn", desired, overrides)
        self._remember_power(self._power_key(target), desired)
        notify(
            self._on_status,
            f"Govee lights at {target.label} turned {'on' if desired else 'off'}.",
            "success",
        )
        return target

    async def toggle_power(self, overrides: Any = None) -> DeviceTarget:
        target = self.resolve_target(overrides)
        desired = not (self.power_state(target) or False)
        return await self.power(desired, overrides)

    async def set_brightness(self, value: Any, overrides: Any = None) -> int:
        normalized = clamp(value, MIN_BRIGHTNESS, MAX_BRIGHTNESS, "brightness")
        parsed = parse_overrides(overrides)
        if parsed.is_empty:
            self._store.set(GOVEE_BRIGHTNESS_KEY, normalized)
        target = await self.send("brightness", normalized, parsed)
        notify(self._on_status, f"Brightness set to {normalized}% for {target.label}.", "success")
        return normalized

    async def set_color(self, color: Any, overrides: Any = None) -> RGB:
        rgb = parse_rgb(color)
        target = await self.send("color", rgb, overrides)
        notify(self._on_status, f"Color set to RGB{rgb} for {target.label}.", "success")
        return rgb

    async def warm_white(self, overrides: Any = None) -> RGB:
        return await self.set_color(WARM_WHITE, overrides)

    async def ocean_blue(self, overrides: Any = None) -> RGB:
        return await self.set_color(OCEAN_BLUE, overrides)

    async def sunset_glow(self, overrides: Any = None) -> RGB:
        return await self.set_color(SUNSET_GLOW, overrides)

    async def apply_preset(self, name: str, overrides: Any = None) -> RGB:
        try:
            rgb = PRESETS[name]
        except KeyError:
            raise InputError(f"Unknown color preset: {name!r}") from None
        return await self.set_color(rgb, overrides)

    # fan-out

    async def multi_command(
        self,
        action: Callable[[LanOverrides], Awaitable[Any]],
        devices: Iterable[Any],
    ) -> FanOutResult:
        """Run ``action`` against every device concurrently; failures are counted."""
        targets = [parse_overrides(device) for device in devices or []]
        if not targets:
            raise InputError("No devices specified")

        results = await asyncio.gather(
            *(action(target) for target in targets), return_exceptions=True
        )
        outcome = FanOutResult()
        for target, result in zip(targets, results):
            if isinstance(result, Exception):
                outcome.failures += 1
                outcome.errors.append(result)
                logger.warning("Govee command to %s failed: %s", target.ip, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                outcome.successes += 1
        return outcome

    async def multi_power(self, on: Any, devices: Iterable[Any]) -> FanOutResult:
        return await self.multi_command(lambda target: self.power(on, target), devices)

    async def multi_toggle(self, devices: Iterable[Any]) -> FanOutResult:
        return await self.multi_command(self.toggle_power, devices)

    async def multi_brightness(self, value: Any, devices: Iterable[Any]) -> FanOutResult:
        return await self.multi_command(lambda target: self.set_brightness(value, target), devices)

    async def multi_color(self, color: Any, devices: Iterable[Any]) -> FanOutResult:
        rgb = parse_rgb(color)
        return await self.multi_command(lambda target: self.set_color(rgb, target), devices)

    # discovery and status

    async def discover(self, timeout_ms: int | None = None) -> list[DiscoveredGoveeDevice]:
        return await self.lan.discover(timeout_ms or self._discovery_timeout_ms)

    async def discover_and_register(self, timeout_ms: int | None = None) -> list[DeviceRegistryEntry]:
        devices = await self.discover(timeout_ms)
        self.registry.register_all(devices)
        return self.registry.entries()

    async def status(self, overrides: Any = None) -> GoveeStatus:
        return await self.lan.status(self.resolve_target(overrides))

    # cloud path

    async def send_cloud(self, step: RoutineStep, cmd: str, value: Any) -> None:
        target = self.cloud.resolve_target(step, self.registry)
        if target is None:
            raise DeviceError("That light is not linked to a LAN address or a Govee cloud device")
        device, model = target
        command = build_cloud_command(cmd, value)
        await self.cloud.control(device, model, command)
        if cmd == "turn":
            self._remember_power(self._cloud_power_key(device), command["value"] == "on")

    # light routines

    async def _run_step(self, step: RoutineStep) -> None:
        if step.type == "wait":
            duration = clamp(step.value, 0, 24 * 60 * 60 * 1000, "wait duration")
            await self._sleep(duration / 1000)
            return

        if step.type in ("colorTemp", "scene"):
            cmd = "colorTem" if step.type == "colorTemp" else "scene"
            await self.send_cloud(step, cmd, step.value)
            return

        overrides = resolve_overrides_for_step(step, self.registry)

        if step.type == "power":
            desired = normalize_power(step.value)
            if overrides is not None:
                await self.power(desired, overrides)
                return
            if desired == "toggle":
                stored = self.cloud_power_state(step.identifier() or "")
                desired = True if stored is None else not stored
            await self.send_cloud(step, "turn", desired)
        elif step.type == "brightness":
            if overrides is not None:
                await self.set_brightness(step.value, overrides)
            else:
                await self.send_cloud(step, "brightness", step.value)
        elif step.type == "color":
            rgb = parse_rgb(step.value)
            if overrides is not None:
                await self.set_color(rgb, overrides)
            else:
                await self.send_cloud(step, "color", rgb)

    async def run_routine(self, steps: Sequence[RoutineStep | Mapping[str, Any]]) -> FanOutResult:
        """Run routine steps in order; a failing step is reported and skipped."""
        if not steps:
            raise InputError("No steps specified in light routine")
        try:
            parsed = [
                step if isinstance(step, RoutineStep) else RoutineStep.model_validate(step)
                for step in steps
            ]
        except ValidationError as exc:
            raise InputError(f"Invalid light routine: {exc}") from exc

        notify(self._on_status, f"Running routine: {len(parsed)} step(s)...")
        outcome = FanOutResult()
        for index, step in enumerate(parsed, start=1):
            logger.debug("Routine step %d/%d: %s", index, len(parsed), step.type)
            try:
                await self._run_step(step)
            except ControlError as exc:
                outcome.failures += 1
                outcome.errors.append(exc)
                notify(self._on_status, f"Error in step {index}: {exc.message}", "error")
            except OSError as exc:
                error = to_control_error(exc)
                outcome.failures += 1
                outcome.errors.append(error)
                notify(self._on_status, f"Error in step {index}: {error.message}", "error")
            else:
                outcome.successes += 1

        notify(self._on_status, "Routine completed!", "success")
        return outcome
