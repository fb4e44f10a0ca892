from __future__ import annotations

from .database import (
    CURRENT_ROOM_KEY,
    DEVICE_REGISTRY_KEY,
    GOVEE_API_KEY_KEY,
    GOVEE_BRIGHTNESS_KEY,
    GOVEE_IP_KEY,
    GOVEE_PORT_KEY,
    GOVEE_POWER_STATE_PREFIX,
    MACROS_KEY,
    ROKU_IP_KEY,
    ROOM_CONFIG_KEY,
    StateStore,
)

__all__ = [
    "CURRENT_ROOM_KEY",
    "DEVICE_REGISTRY_KEY",
    "GOVEE_API_KEY_KEY",
    "GOVEE_BRIGHTNESS_KEY",
    "GOVEE_IP_KEY",
    "GOVEE_PORT_KEY",
    "GOVEE_POWER_STATE_PREFIX",
    "MACROS_KEY",
    "ROKU_IP_KEY",
    "ROOM_CONFIG_KEY",
    "StateStore",
]
