from __future__ import annotations

import asyncio
import json

import pytest

from rokucontrol.errors import InputError, NetworkError
from rokucontrol.govee import DeviceRegistry, GoveeCloud, GoveeController, GoveeLan
from rokucontrol.handlers import ButtonConfig, HandlerRegistry


class FakeRoku:
    def __init__(self):
        self.calls = []

    async def send_key(self, key):
        self.calls.append(("key", key))

    async def launch_app(self, app_id, content_id=None):
        self.calls.append(("launch", app_id, content_id))


class FakeSequencer:
    def __init__(self):
        self.calls = []

    async def run(self, macro_id):
        self.calls.append(macro_id)

    async def run_favorite(self):
        self.calls.append("favorite")


@pytest.fixture
def parts(store, bridge):
    async def no_sleep(seconds):
        return None

    govee = GoveeController(
        store, GoveeLan(bridge), GoveeCloud(store, bridge), DeviceRegistry(store), sleep=no_sleep
    )
    statuses = []
    registry = HandlerRegistry(
        FakeRoku(),
        govee,
        FakeSequencer(),
        on_status=lambda message, level: statuses.append((level, message)),
    )
    return registry, bridge, statuses


def lan_payloads(bridge):
    return [
        (host, port, json.loads(body)["msg"])
        for name, (host, port, body) in bridge.calls
        if name == "govee_send"
    ]


def test_unknown_handler_rejected_at_bind(parts):
    registry, _, _ = parts
    with pytest.raises(InputError):
        registry.bind({"handler": "selfDestruct"})
    with pytest.raises(InputError):
        registry.bind({"label": "no handler"})


@pytest.mark.parametrize(
    "config",
    [
        {"handler": "sendKey"},
        {"handler": "sendKey", "args": ["Home", "Back"]},
        {"handler": "launchApp", "args": [""]},
        {"handler": "goveeBrightness", "args": ["bright"]},
        {"handler": "goveeColor", "args": [255, 0]},
        {"handler": "goveeMultiPower", "args": ["on", []]},
        {"handler": "lightRoutine", "args": [[{"type": "explode"}]]},
        {"handler": "runFavoriteMacro", "args": ["extra"]},
    ],
)
def test_malformed_args_rejected_at_bind(parts, config):
    registry, _, _ = parts
    with pytest.raises(InputError):
        registry.bind(config)


def test_roku_and_macro_handlers(parts):
    registry, _, _ = parts
    actions = registry.bind_all(
        [
            ButtonConfig(label="Home", handler="sendKey", args=["Home"]),
            {"handler": "launchApp", "args": ["12", "abc"]},
            {"handler": "runMacro", "args": ["macro-1"]},
            {"handler": "runFavoriteMacro"},
        ]
    )

    async def press_all():
        for action in actions:
            await action()

    asyncio.run(press_all())

    assert actions[0].label == "Home"
    assert registry._roku.calls == [("key", "Home"), ("launch", "12", "abc")]
    assert registry._sequencer.calls == ["macro-1", "favorite"]


def test_aliases_resolve(parts):
    registry, bridge, _ = parts
    action = registry.bind({"handler": "goveeApplyBrightness", "args": [{"value": 120, "ip": "10.0.0.2"}]})
    assert action.handler == "goveeBrightness"

    asyncio.run(action())

    assert lan_payloads(bridge) == [
        ("10.0.0.2", 4003, {"cmd": "brightness", "data": {"value": 100}})
    ]


def test_color_and_preset_args(parts):
    registry, bridge, _ = parts
    asyncio.run(registry.bind({"handler": "goveeColor", "args": [10, 20, 30, "10.0.0.2", 4010]})())
    asyncio.run(registry.bind({"handler": "goveeSetColor", "args": ["1,2,3", "10.0.0.3"]})())
    asyncio.run(registry.bind({"handler": "goveeWarmWhite", "args": ["10.0.0.4"]})())

    payloads = lan_payloads(bridge)
    assert payloads[0] == ("10.0.0.2", 4010, {"cmd": "color", "data": {"r": 10, "g": 20, "b": 30}})
    assert payloads[1][:2] == ("10.0.0.3", 4003)
    assert payloads[1][2]["data"] == {"r": 1, "g": 2, "b": 3}
    assert payloads[2][2]["data"] == {"r": 255, "g": 230, "b": 200}


def test_legacy_packed_power_args(parts):
    registry, bridge, _ = parts
    asyncio.run(registry.bind({"handler": "goveePower", "args": [["off", "10.0.0.2", 4011]]})())
    assert lan_payloads(bridge) == [("10.0.0.2", 4011, {"cmd": "turn", "data": {"value": 0}})]


def test_multi_power_toggle(parts):
    registry, bridge, _ = parts
    action = registry.bind({"handler": "goveeMultiPower", "args": ["toggle", ["10.0.0.2", "10.0.0.3"]]})

    result = asyncio.run(action())

    assert (result.successes, result.failures) == (2, 0)
    assert sorted(host for host, _, _ in lan_payloads(bridge)) == ["10.0.0.2", "10.0.0.3"]


def test_light_routine_from_routine_field(parts):
    registry, bridge, _ = parts
    action = registry.bind(
        {
            "handler": "lightRoutine",
            "routine": [
                {"type": "power", "value": "on", "ip": "10.0.0.2"},
                {"type": "wait", "value": 10},
            ],
        }
    )

    result = asyncio.run(action())

    assert result.successes == 2
    assert lan_payloads(bridge)[0][2]["cmd"] == "turn"


def test_failures_are_reported_and_raised(parts):
    registry, bridge, statuses = parts
    bridge.fail["govee_send"] = NetworkError("unreachable")
    action = registry.bind({"handler": "goveeTogglePower", "args": ["10.0.0.2"]})

    with pytest.raises(NetworkError):
        asyncio.run(action())

    assert statuses[-1] == ("error", "Network connection issue: unreachable")


def test_names_include_aliases(parts):
    registry, _, _ = parts
    assert "goveeApplyBrightness" in registry.names
    assert "lightRoutine" in registry.names
