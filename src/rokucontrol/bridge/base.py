from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class NativeBridge(Protocol):
    """Command surface of the host's native bridge.

    The bridge owns raw sockets and platform radios. Everything above it
    (transport, command builders, sequencer, locator) only talks to devices
    through these calls or through plain HTTP.
    """

    async def roku_get(self, url: str) -> str: ...

    async def roku_post(self, url: str, body: str) -> None: ...

    async def roku_discover(self, timeout_secs: float) -> list[dict[str, Any]]: ...

    async def govee_send(self, host: str, port: int, body: str) -> None: ...

    async def govee_discover(self, timeout_ms: int) -> list[dict[str, Any]]: ...

    async def govee_status(self, host: str, port: int) -> dict[str, Any]: ...

    async def govee_cloud_control(
        self, api_key: str, device: str, model: str, cmd: dict[str, Any]
    ) -> None: ...

    async def ble_scan(self, timeout_ms: int) -> list[dict[str, Any]]: ...

    async def is_on_wifi(self) -> bool: ...


class BleScanner(Protocol):
    """Anything that can produce a batch of BLE readings."""

    async def __call__(self, timeout_ms: int) -> list[dict[str, Any]]: ...
