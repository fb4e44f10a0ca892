"""Data models for rokucontrol."""

from rokucontrol.models.devices import (
    BleReading,
    DeviceRegistryEntry,
    DeviceTarget,
    DiscoveredGoveeDevice,
    GoveeCloudDevice,
    GoveeStatus,
    MediaPlayerState,
    NowPlaying,
    RokuApp,
    RokuDevice,
    RokuDeviceInfo,
)
from rokucontrol.models.macros import (
    STEP_ADAPTER,
    DelayStep,
    KeyStep,
    LaunchStep,
    Macro,
    MacroStep,
)
from rokucontrol.models.rooms import (
    DEFAULT_RSSI_THRESHOLD,
    Beacon,
    Room,
    RoomConfig,
    RoomSettings,
)
from rokucontrol.models.routines import FanOutResult, RoutineDevice, RoutineStep

__all__ = [
    "DEFAULT_RSSI_THRESHOLD",
    "STEP_ADAPTER",
    "Beacon",
    "BleReading",
    "DelayStep",
    "DeviceRegistryEntry",
    "DeviceTarget",
    "DiscoveredGoveeDevice",
    "FanOutResult",
    "GoveeCloudDevice",
    "GoveeStatus",
    "KeyStep",
    "LaunchStep",
    "Macro",
    "MacroStep",
    "MediaPlayerState",
    "NowPlaying",
    "RokuApp",
    "RokuDevice",
    "RokuDeviceInfo",
    "Room",
    "RoomConfig",
    "RoomSettings",
    "RoutineDevice",
    "RoutineStep",
]
