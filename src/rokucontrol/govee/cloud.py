from __future__ import annotations

import logging
from typing import Any

import aiohttp
from pydantic import ValidationError

from rokucontrol.bridge import NativeBridge
from rokucontrol.config import GOVEE_API_BASE
from rokucontrol.errors import DeviceError, InputError, NetworkError
from rokucontrol.models import GoveeCloudDevice, RoutineStep
from rokucontrol.storage import GOVEE_API_KEY_KEY, StateStore

from .registry import DeviceRegistry, normalize_identifier

logger = logging.getLogger(__name__)


def _extract_devices(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("devices"), list):
        return data["devices"]
    if isinstance(payload.get("devices"), list):
        return payload["devices"]
    return []


class GoveeCloud:
    """Govee developer API: device listing over HTTPS, control through the bridge."""

    def __init__(
        self,
        store: StateStore,
        bridge: NativeBridge | None = None,
        api_base: str = GOVEE_API_BASE,
        timeout: float = 10.0,
        default_api_key: str | None = None,
    ) -> None:
        self._store = store
        self._bridge = bridge
        self._api_base = api_base.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._default_api_key = default_api_key
        self._devices: list[GoveeCloudDevice] | None = None

    @property
    def api_key(self) -> str | None:
        return self._store.get(GOVEE_API_KEY_KEY) or self._default_api_key

    def save_api_key(self, api_key: str | None) -> None:
        api_key = (api_key or "").strip()
        if api_key:
            self._store.set(GOVEE_API_KEY_KEY, api_key)
        else:
            self._store.remove(GOVEE_API_KEY_KEY)
        self._devices = None

    def _require_api_key(self) -> str:
        api_key = self.api_key
        if not api_key:
            raise InputError("Save a Govee API key to use cloud control")
        return api_key

    @property
    def cached_devices(self) -> list[GoveeCloudDevice]:
        return list(self._devices or [])

    async def list_devices(self, refresh: bool = False) -> list[GoveeCloudDevice]:
        if self._devices is not None and not refresh:
            return list(self._devices)

        api_key = self._require_api_key()
        url = f"{self._api_base}/devices"
        headers = {"Govee-API-Key": api_key, "Content-Type": "application/json"}
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.get(url, headers=headers) as response:
                    if response.status >= 400:
                        text = await response.text()
                        raise NetworkError(
                            text.strip() or f"Request failed with status {response.status}",
                            status=response.status,
                        )
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as exc:
                        raise DeviceError(
                            "Received an unreadable response from the Govee cloud"
                        ) from exc
        except aiohttp.ClientError as exc:
            raise NetworkError(f"Govee cloud request failed: {exc}") from exc

        devices = []
        for raw in _extract_devices(payload):
            try:
                devices.append(GoveeCloudDevice.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Ignoring malformed cloud device: %s", exc)
        self._devices = devices
        logger.info("Loaded %d device(s) from the Govee cloud", len(devices))
        return list(devices)

    def find_device(self, identifier: str | None) -> GoveeCloudDevice | None:
        """Match against the session cache by device id or name."""
        normalized = normalize_identifier(identifier)
        if not normalized:
            return None
        for device in self._devices or []:
            if normalize_identifier(device.device) == normalized:
                return device
            if normalize_identifier(device.device_name) == normalized:
                return device
        return None

    def resolve_target(
        self, step: RoutineStep, registry: DeviceRegistry | None = None
    ) -> tuple[str, str] | None:
        """``(device, model)`` for a routine step, preferring the cloud list."""
        identifier = step.identifier()
        if not identifier or not normalize_identifier(identifier):
            return None

        cloud_device = self.find_device(identifier)
        if cloud_device is not None:
            return cloud_device.device or identifier, cloud_device.model or step.model or ""

        entry = registry.find(identifier) if registry is not None else None
        if entry is not None:
            return identifier, entry.model or step.model or ""
        return identifier, step.model or ""

    async def control(self, device: str, model: str, cmd: dict[str, Any]) -> None:
        if self._bridge is None:
            raise DeviceError("Govee cloud control requires a native bridge")
        api_key = self._require_api_key()
        await self._bridge.govee_cloud_control(api_key, device, model, cmd)
        logger.debug("Cloud command %s sent to %s", cmd.get("name"), device)
