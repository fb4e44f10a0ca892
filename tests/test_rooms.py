from __future__ import annotations

import asyncio
import json

import aiohttp
import pytest

from rokucontrol.concurrency import ExecutionFlags
from rokucontrol.errors import DeviceError, NotFoundError
from rokucontrol.models import RoomConfig
from rokucontrol.rooms import RoomLocator, detect_room
from rokucontrol.storage import CURRENT_ROOM_KEY, ROOM_CONFIG_KEY

CONFIG = {
    "rooms": [
        {
            "id": "living",
            "name": "Living Room",
            "emoji": "🛋️",
            "beacons": [
                {"address": "AA:AA:AA:AA:AA:01", "rssiThreshold": -75},
                {"address": "AA:AA:AA:AA:AA:02"},
            ],
            "devices": {"govee": ["192.168.1.40"], "roku": ["192.168.1.70"]},
        },
        {
            "id": "bedroom",
            "name": "Bedroom",
            "beacons": [{"address": "BB:BB:BB:BB:BB:01", "rssiThreshold": -80}],
        },
    ],
    "settings": {"autoDetect": True, "scanIntervalMs": 2000, "fallbackRoomId": "living"},
}


def config(**settings):
    data = json.loads(json.dumps(CONFIG))
    data["settings"].update(settings)
    return RoomConfig.model_validate(data)


def make_locator(store, readings=None, flags=None, **kwargs):
    async def scanner(timeout_ms):
        if isinstance(readings, Exception):
            raise readings
        return readings or []

    return RoomLocator(store, scanner, flags or ExecutionFlags(), **kwargs)


def test_strongest_mean_score_wins():
    readings = [
        {"address": "aa:aa:aa:aa:aa:01", "rssi": -60},
        {"address": "AA:AA:AA:AA:AA:02", "rssi": -65},
        {"address": "BB:BB:BB:BB:BB:01", "rssi": -50},
    ]
    # living averages 37.5, bedroom scores 50
    assert detect_room(readings, config()) == "bedroom"


def test_unmatched_beacons_do_not_lower_the_mean():
    readings = [
        {"address": "AA:AA:AA:AA:AA:01", "rssi": -40},
        {"address": "BB:BB:BB:BB:BB:01", "rssi": -45},
    ]
    # beacon 02 of the living room is not seen and does not count
    assert detect_room(readings, config()) == "living"


def test_threshold_excludes_weak_signals():
    readings = [{"address": "AA:AA:AA:AA:AA:02", "rssi": -71}]
    assert detect_room(readings, config(fallbackRoomId=None)) is None


def test_fallback_room_when_nothing_matches():
    assert detect_room([{"address": "CC:CC", "rssi": -30}], config()) == "living"
    assert detect_room([], config()) == "living"


def test_manual_mode_never_detects():
    readings = [{"address": "BB:BB:BB:BB:BB:01", "rssi": -30}]
    assert detect_room(readings, config(detectionMode="manual")) is None


def test_malformed_readings_are_ignored():
    readings = [{"rssi": "loud"}, {"address": "BB:BB:BB:BB:BB:01", "rssi": -60}]
    assert detect_room(readings, config()) == "bedroom"


def test_load_config_prefers_cloud(store, tmp_path, monkeypatch):
    default_file = tmp_path / "rooms.json"
    default_file.write_text(json.dumps({"rooms": [{"id": "garage"}]}))
    store.set(ROOM_CONFIG_KEY, {"rooms": [{"id": "stored"}]})
    locator = make_locator(
        store, default_config_path=default_file, cloud_config_url="https://example.invalid/rooms"
    )

    async def from_cloud(url):
        return RoomConfig.model_validate({"rooms": [{"id": "cloud"}]})

    monkeypatch.setattr(locator, "_fetch_cloud_config", from_cloud)

    loaded = asyncio.run(locator.load_config())
    assert [room.id for room in loaded.rooms] == ["cloud"]


def test_load_config_falls_back_to_stored_then_default(store, tmp_path, monkeypatch):
    default_file = tmp_path / "rooms.json"
    default_file.write_text(json.dumps({"rooms": [{"id": "garage"}]}))
    locator = make_locator(
        store, default_config_path=default_file, cloud_config_url="https://example.invalid/rooms"
    )

    async def offline(url):
        raise aiohttp.ClientError("offline")

    monkeypatch.setattr(locator, "_fetch_cloud_config", offline)

    assert [room.id for room in asyncio.run(locator.load_config()).rooms] == ["garage"]

    store.set(ROOM_CONFIG_KEY, {"rooms": [{"id": "stored"}]})
    assert [room.id for room in asyncio.run(locator.load_config()).rooms] == ["stored"]


def test_load_config_minimal_when_nothing_available(store, tmp_path):
    locator = make_locator(store, default_config_path=tmp_path / "missing.json", scan_interval_ms=7000)
    loaded = asyncio.run(locator.load_config())
    assert loaded.rooms == []
    assert loaded.settings.detection_mode == "manual"
    assert loaded.settings.scan_interval_ms == 7000


def test_current_room_persists(store):
    changes = []
    locator = make_locator(store, on_room_changed=lambda room, source: changes.append((room, source)))
    locator.save_config(config())

    locator.set_current_room("bedroom")
    assert store.get(CURRENT_ROOM_KEY) == "bedroom"
    assert make_locator(store).current_room == "bedroom"

    locator.set_current_room(None)
    assert not store.has(CURRENT_ROOM_KEY)
    assert changes == [("bedroom", "manual"), (None, "manual")]


def test_room_devices(store):
    locator = make_locator(store)
    locator.save_config(config())
    assert locator.is_device_in_current_room("govee", "anything")

    locator.set_current_room("living")
    assert locator.room_devices("govee") == ["192.168.1.40"]
    assert locator.is_device_in_current_room("roku", "192.168.1.70")
    assert not locator.is_device_in_current_room("roku", "192.168.1.99")


def test_perform_detection_sets_room(store):
    readings = [{"address": "BB:BB:BB:BB:BB:01", "rssi": -55}]
    locator = make_locator(store, readings)
    locator.save_config(config())

    assert asyncio.run(locator.perform_detection()) == "bedroom"
    assert locator.current_room == "bedroom"


def test_perform_detection_ignores_scan_errors(store):
    locator = make_locator(store, OSError("radio off"))
    locator.save_config(config())
    assert asyncio.run(locator.perform_detection()) is None
    assert locator.current_room is None


def test_detect_manually_requires_rooms_and_scanner(store):
    locator = make_locator(store)
    with pytest.raises(NotFoundError):
        asyncio.run(locator.detect_room_manually())

    no_scanner = RoomLocator(store, None, ExecutionFlags())
    no_scanner.save_config(config())
    with pytest.raises(DeviceError):
        asyncio.run(no_scanner.detect_room_manually())


def test_detect_manually_sets_room(store):
    readings = [{"address": "AA:AA:AA:AA:AA:01", "rssi": -50}]
    locator = make_locator(store, readings)
    locator.save_config(config(autoDetect=False))

    assert asyncio.run(locator.detect_room_manually()) == "living"
    assert locator.current_room == "living"


def test_auto_detection_start_and_stop(store):
    flags = ExecutionFlags()
    readings = [{"address": "BB:BB:BB:BB:BB:01", "rssi": -55}]

    async def scenario():
        locator = make_locator(store, readings, flags)
        locator.save_config(config())
        assert locator.start_auto_detection() is True
        assert flags.detection.is_held
        await asyncio.sleep(0.01)
        assert locator.is_detection_active
        locator.stop_auto_detection()
        return locator

    locator = asyncio.run(scenario())
    assert locator.current_room == "bedroom"
    assert not flags.detection.is_held
    assert not locator.is_detection_active


def test_detection_survives_failing_room_callback(store):
    flags = ExecutionFlags()
    scans = []

    async def scanner(timeout_ms):
        scans.append(timeout_ms)
        return [{"address": "BB:BB:BB:BB:BB:01", "rssi": -55}]

    def on_room_changed(room_id, source):
        raise RuntimeError("ui callback failed")

    async def fast_sleep(seconds):
        await asyncio.sleep(0)

    async def scenario():
        locator = RoomLocator(
            store, scanner, flags, sleep=fast_sleep, on_room_changed=on_room_changed
        )
        locator.save_config(config())
        assert locator.start_auto_detection() is True
        for _ in range(20):
            await asyncio.sleep(0)
        active = locator.is_detection_active
        locator.stop_auto_detection()
        return active

    assert asyncio.run(scenario()) is True
    assert len(scans) > 1
    assert store.get(CURRENT_ROOM_KEY) == "bedroom"
    assert not flags.detection.is_held


def test_detection_loop_exit_releases_flag(store):
    flags = ExecutionFlags()

    async def broken_sleep(seconds):
        raise RuntimeError("timer gone")

    async def scenario():
        locator = make_locator(store, flags=flags, sleep=broken_sleep)
        locator.save_config(config())
        assert locator.start_auto_detection() is True
        for _ in range(5):
            await asyncio.sleep(0)
        return locator

    locator = asyncio.run(scenario())
    assert not locator.is_detection_active
    assert not flags.detection.is_held


def test_restarting_detection_replaces_the_loop(store):
    flags = ExecutionFlags()

    async def scenario():
        locator = make_locator(store, flags=flags)
        locator.save_config(config())
        assert locator.start_auto_detection() is True
        first = locator._task
        assert locator.start_auto_detection() is True
        second = locator._task
        await asyncio.sleep(0)

        assert first is not second
        assert first.cancelled()
        assert not second.done()
        live = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
        assert live == [second]
        assert flags.detection.is_held

        locator.stop_auto_detection()
        locator.stop_auto_detection()
        await asyncio.sleep(0)
        assert not flags.detection.is_held
        assert second.cancelled()

    asyncio.run(scenario())


def test_auto_detection_disabled(store):
    async def scenario():
        locator = make_locator(store)
        locator.save_config(config(autoDetect=False))
        return locator.start_auto_detection()

    assert asyncio.run(scenario()) is False


def test_toggle_auto_detect_persists(store):
    async def scenario():
        locator = make_locator(store)
        locator.save_config(config(autoDetect=False))
        enabled = await locator.toggle_auto_detect()
        locator.stop_auto_detection()
        return enabled

    assert asyncio.run(scenario()) is True
    assert store.get(ROOM_CONFIG_KEY)["settings"]["autoDetect"] is True
