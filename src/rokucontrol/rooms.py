"""BLE proximity room detection and the persisted current room."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import aiohttp
from pydantic import ValidationError

from rokucontrol.bridge import BleScanner
from rokucontrol.concurrency import ExecutionFlags
from rokucontrol.errors import DeviceError, NotFoundError, to_control_error
from rokucontrol.models import DEFAULT_RSSI_THRESHOLD, BleReading, Room, RoomConfig
from rokucontrol.status import StatusCallback, notify
from rokucontrol.storage import CURRENT_ROOM_KEY, ROOM_CONFIG_KEY, StateStore

logger = logging.getLogger(__name__)

DEFAULT_SCAN_TIMEOUT_MS = 5000
CLOUD_CONFIG_TIMEOUT = 10.0

Sleep = Callable[[float], Awaitable[Any]]
RoomChangedCallback = Callable[[str | None, str], None]


def parse_readings(raw: Iterable[BleReading | Mapping[str, Any]]) -> list[BleReading]:
    readings = []
    for item in raw or []:
        if isinstance(item, BleReading):
            readings.append(item)
            continue
        try:
            readings.append(BleReading.model_validate(item))
        except ValidationError as exc:
            logger.debug("Ignoring malformed BLE reading: %s", exc)
    return readings


def detect_room(readings: Iterable[BleReading | Mapping[str, Any]], config: RoomConfig) -> str | None:
    """Pick the room whose matched beacons have the best mean score.

    A beacon matches when it was seen with an RSSI at or above its
    threshold and scores ``100 + rssi``. A room's score is the mean over its
    matched beacons only. Without any match the fallback room is returned;
    in manual mode the result is always None.
    """
    if config.settings.detection_mode == "manual":
        return None

    rssi_by_address: dict[str, int] = {}
    for reading in parse_readings(readings):
        if reading.address and reading.rssi is not None:
            rssi_by_address[reading.address.lower()] = reading.rssi

    scores: list[tuple[str, float, int]] = []
    for room in config.rooms:
        total = 0
        matched = 0
        for beacon in room.beacons:
            rssi = rssi_by_address.get(beacon.address.lower())
            if rssi is None:
                continue
            threshold = beacon.rssi_threshold or DEFAULT_RSSI_THRESHOLD
            if rssi >= threshold:
                total += 100 + rssi
                matched += 1
        if matched:
            scores.append((room.id, total / matched, matched))

    if not scores:
        logger.debug("No rooms matched the scan")
        return config.settings.fallback_room_id

    scores.sort(key=lambda item: item[1], reverse=True)
    room_id, score, matched = scores[0]
    logger.debug("Detected room %s (score %.1f, %d beacon(s))", room_id, score, matched)
    return room_id


class RoomLocator:
    """Owns the room configuration, the current room and periodic detection."""

    def __init__(
        self,
        store: StateStore,
        scanner: BleScanner | None,
        flags: ExecutionFlags,
        *,
        default_config_path: Path | None = None,
        cloud_config_url: str | None = None,
        scan_interval_ms: int = 10000,
        sleep: Sleep = asyncio.sleep,
        on_status: StatusCallback | None = None,
        on_room_changed: RoomChangedCallback | None = None,
    ) -> None:
        self._store = store
        self._scanner = scanner
        self._flags = flags
        self._default_config_path = default_config_path
        self._cloud_config_url = cloud_config_url
        self._scan_interval_ms = scan_interval_ms
        self._sleep = sleep
        self._on_status = on_status
        self._on_room_changed = on_room_changed
        self._config: RoomConfig | None = None
        self._current_room: str | None = None
        self._task: asyncio.Task[None] | None = None

    # configuration

    async def _fetch_cloud_config(self, url: str) -> RoomConfig:
        timeout = aiohttp.ClientTimeout(total=CLOUD_CONFIG_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, headers={"Cache-Control": "no-store"}) as response:
                response.raise_for_status()
                return RoomConfig.model_validate(await response.json(content_type=None))

    def _read_default_file(self, path: Path) -> RoomConfig:
        with path.open("r") as handle:
            return RoomConfig.model_validate(json.load(handle))

    async def load_config(self) -> RoomConfig:
        """Load from the cloud, then local storage, then the default file."""
        if self._cloud_config_url:
            try:
                self._config = await self._fetch_cloud_config(self._cloud_config_url)
                logger.info("Loaded room config from cloud")
                return self._config
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                logger.warning("Failed to load room config from cloud: %s", exc)

        stored = self._store.get(ROOM_CONFIG_KEY)
        if stored:
            try:
                self._config = RoomConfig.model_validate(stored)
                logger.info("Loaded room config from local storage")
                return self._config
            except ValidationError as exc:
                logger.warning("Stored room config is invalid: %s", exc)

        if self._default_config_path is not None:
            try:
                self._config = self._read_default_file(self._default_config_path)
                logger.info("Loaded default room config from %s", self._default_config_path)
                return self._config
            except (OSError, ValueError) as exc:
                logger.error("Failed to load room config: %s", exc)

        self._config = RoomConfig.minimal(self._scan_interval_ms)
        return self._config

    def save_config(self, config: RoomConfig | Mapping[str, Any]) -> RoomConfig:
        if not isinstance(config, RoomConfig):
            config = RoomConfig.model_validate(config)
        self._store.set(ROOM_CONFIG_KEY, config.model_dump(mode="json", by_alias=True))
        self._config = config
        logger.info("Room config saved")
        return config

    @property
    def config(self) -> RoomConfig | None:
        return self._config

    def get_room(self, room_id: str | None) -> Room | None:
        if self._config is None or not room_id:
            return None
        return next((room for room in self._config.rooms if room.id == room_id), None)

    # current room

    @property
    def current_room(self) -> str | None:
        if self._current_room is None:
            self._current_room = self._store.get(CURRENT_ROOM_KEY)
        return self._current_room

    def set_current_room(self, room_id: str | None, source: str = "manual") -> None:
        self._current_room = room_id
        if room_id is None:
            self._store.remove(CURRENT_ROOM_KEY)
        else:
            self._store.set(CURRENT_ROOM_KEY, room_id)
        logger.info("Room changed to %s (source: %s)", room_id, source)
        if self._on_room_changed is not None:
            self._on_room_changed(room_id, source)

    def room_devices(self, kind: str) -> list[str]:
        room = self.get_room(self.current_room)
        if room is None:
            return []
        return list(room.devices.get(kind, []))

    def is_device_in_current_room(self, kind: str, device_id: str) -> bool:
        if not self.current_room:
            return True
        return device_id in self.room_devices(kind)

    # detection

    def _scan_timeout_ms(self) -> int:
        if self._config is None:
            return DEFAULT_SCAN_TIMEOUT_MS
        return self._config.settings.scan_interval_ms or DEFAULT_SCAN_TIMEOUT_MS

    async def _scan(self) -> list[BleReading]:
        if self._scanner is None:
            raise DeviceError("BLE scanning is not available")
        return parse_readings(await self._scanner(self._scan_timeout_ms()))

    async def perform_detection(self) -> str | None:
        """One scan-and-detect pass; failures are logged, not raised."""
        if self._config is None or not self._config.settings.auto_detect:
            return None
        if self._scanner is None:
            logger.warning("BLE scanner not configured")
            return None

        try:
            readings = await self._scan()
            if not readings:
                logger.debug("No devices found during scan")
                return None

            room_id = detect_room(readings, self._config)
            if room_id and room_id != self.current_room:
                self.set_current_room(room_id, "auto")
            return room_id
        except Exception as exc:
            logger.error("Room detection failed: %s", exc)
            return None

    @property
    def is_detection_active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _detection_loop(self, interval_ms: int) -> None:
        try:
            while True:
                await self.perform_detection()
                await self._sleep(interval_ms / 1000)
        finally:
            # stop_auto_detection already released the flag for its own task
            if self._task is asyncio.current_task():
                self._task = None
                self._flags.detection.release()

    def start_auto_detection(self) -> bool:
        """Start periodic detection, replacing any running loop."""
        self.stop_auto_detection()
        if self._config is None or not self._config.settings.auto_detect:
            logger.info("Auto room detection is disabled")
            return False
        if not self._flags.detection.try_acquire():
            logger.warning("Room detection is already running")
            return False

        interval = self._config.settings.scan_interval_ms
        logger.info("Starting room detection (scan every %dms)", interval)
        self._task = asyncio.get_running_loop().create_task(self._detection_loop(interval))
        return True

    def stop_auto_detection(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        self._flags.detection.release()
        logger.info("Room detection stopped")

    async def toggle_auto_detect(self) -> bool:
        if self._config is None:
            raise NotFoundError("No room configuration loaded")
        enabled = not self._config.settings.auto_detect
        settings = self._config.settings.model_copy(update={"auto_detect": enabled})
        self.save_config(self._config.model_copy(update={"settings": settings}))

        if enabled:
            self.start_auto_detection()
            notify(self._on_status, "Auto room detection enabled", "success")
        else:
            self.stop_auto_detection()
            notify(self._on_status, "Auto room detection disabled", "success")
        return enabled

    async def detect_room_manually(self) -> str | None:
        """One-off scan regardless of the auto-detect setting."""
        if self._config is None or not self._config.rooms:
            raise NotFoundError("No rooms configured")
        if self._scanner is None:
            raise DeviceError("BLE scanning is not available")

        notify(self._on_status, "Scanning for nearby devices...")
        try:
            readings = await self._scan()
        except Exception as exc:
            notify(self._on_status, "Room detection failed", "error")
            error = to_control_error(exc)
            if error is exc:
                raise
            raise error from exc

        if not readings:
            notify(self._on_status, "No devices found")
            return None

        room_id = detect_room(readings, self._config)
        if not room_id:
            notify(self._on_status, "No matching room found")
            return None

        room = self.get_room(room_id)
        self.set_current_room(room_id, "manual")
        notify(
            self._on_status,
            f"Found room: {room.display_name if room else room_id}",
            "success",
        )
        return room_id
