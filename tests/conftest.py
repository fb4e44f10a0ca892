from __future__ import annotations

from typing import Any

import pytest

from rokucontrol.config import CONFIG_ENV_VAR, get_settings
from rokucontrol.storage import StateStore


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv("LOGLEVEL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeBridge:
    """Records every bridge call; per-method failures are set in ``fail``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail: dict[str, BaseException] = {}
        self.get_response = ""
        self.roku_devices: list[dict[str, Any]] = []
        self.govee_devices: list[dict[str, Any]] = []
        self.status_reply: dict[str, Any] = {"online": True, "power": True}
        self.readings: list[dict[str, Any]] = []

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail:
            raise self.fail[name]

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def roku_get(self, url: str) -> str:
        self._record("roku_get", url)
        return self.get_response

    async def roku_post(self, url: str, body: str) -> None:
        self._record("roku_post", url, body)

    async def roku_discover(self, timeout_secs: float) -> list[dict[str, Any]]:
        self._record("roku_discover", timeout_secs)
        return self.roku_devices

    async def govee_send(self, host: str, port: int, body: str) -> None:
        self._record("govee_send", host, port, body)

    async def govee_discover(self, timeout_ms: int) -> list[dict[str, Any]]:
        self._record("govee_discover", timeout_ms)
        return self.govee_devices

    async def govee_status(self, host: str, port: int) -> dict[str, Any]:
        self._record("govee_status", host, port)
        return self.status_reply

    async def govee_cloud_control(
        self, api_key: str, device: str, model: str, cmd: dict[str, Any]
    ) -> None:
        self._record("govee_cloud_control", api_key, device, model, cmd)

    async def ble_scan(self, timeout_ms: int) -> list[dict[str, Any]]:
        self._record("ble_scan", timeout_ms)
        return self.readings

    async def is_on_wifi(self) -> bool:
        return True


@pytest.fixture
def store() -> StateStore:
    return StateStore.in_memory()


@pytest.fixture
def bridge() -> FakeBridge:
    return FakeBridge()
