from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from rokucontrol.bridge import NativeBridge
from rokucontrol.errors import DeviceError
from rokucontrol.models import DeviceTarget, DiscoveredGoveeDevice, GoveeStatus

logger = logging.getLogger(__name__)


class GoveeLan:
    """JSON-over-UDP commands, sent through the native bridge."""

    def __init__(self, bridge: NativeBridge | None) -> None:
        self._bridge = bridge

    @property
    def available(self) -> bool:
        return self._bridge is not None

    def _require_bridge(self) -> NativeBridge:
        if self._bridge is None:
            raise DeviceError("Govee LAN control requires a native bridge")
        return self._bridge

    async def send(self, target: DeviceTarget, envelope: dict[str, Any]) -> None:
        bridge = self._require_bridge()
        body = json.dumps(envelope, separators=(",", ":"))
        await bridge.govee_send(target.host, target.port, body)
        logger.debug("Sent %s to %s", envelope.get("msg", {}).get("cmd"), target.label)

    async def discover(self, timeout_ms: int = 3000) -> list[DiscoveredGoveeDevice]:
        bridge = self._require_bridge()
        devices = []
        for raw in await bridge.govee_discover(timeout_ms) or []:
            try:
                devices.append(DiscoveredGoveeDevice.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Ignoring malformed discovery result: %s", exc)
        logger.info("Discovered %d Govee device(s)", len(devices))
        return devices

    async def status(self, target: DeviceTarget) -> GoveeStatus:
        bridge = self._require_bridge()
        return GoveeStatus.model_validate(await bridge.govee_status(target.host, target.port))
