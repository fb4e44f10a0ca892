from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from rokucontrol.errors import StorageError

logger = logging.getLogger(__name__)

STATE_FILE = "state.json"

# persisted keys
ROKU_IP_KEY = "roku_ip"
GOVEE_IP_KEY = "govee_ip"
GOVEE_PORT_KEY = "govee_port"
GOVEE_BRIGHTNESS_KEY = "govee_brightness"
GOVEE_API_KEY_KEY = "govee_api_key"
GOVEE_POWER_STATE_PREFIX = "govee_power_state_"
DEVICE_REGISTRY_KEY = "device_registry"
MACROS_KEY = "roku_macros"
ROOM_CONFIG_KEY = "room_config"
CURRENT_ROOM_KEY = "current_room"


class StateStore:
    """Key/value store for local state, persisted as a single JSON document.

    Values must be JSON serializable. Every write rewrites the file through a
    temporary sibling so a crash never leaves a half-written document behind.
    """

    def __init__(self, data_dir: Path | None = None) -> None:
        self._data_dir = data_dir
        self._state_path = data_dir / STATE_FILE if data_dir is not None else None
        self._cache: dict[str, Any] | None = None

    @classmethod
    def in_memory(cls) -> StateStore:
        store = cls(None)
        store._cache = {}
        return store

    @property
    def path(self) -> Path | None:
        return self._data_dir

    @property
    def state_path(self) -> Path | None:
        return self._state_path

    def ensure_dirs(self) -> None:
        if self._data_dir is not None:
            self._data_dir.mkdir(parents=True, exist_ok=True)

    def _load(self) -> dict[str, Any]:
        if self._cache is not None:
            return self._cache

        if self._state_path is None or not self._state_path.exists():
            self._cache = {}
            return self._cache

        try:
            with self._state_path.open("r") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in state file: {self._state_path}\n{exc}") from exc

        if not isinstance(data, dict):
            raise ValueError(f"Invalid state file: {self._state_path}")
        self._cache = data
        return self._cache

    def _persist(self) -> None:
        if self._state_path is None:
            return
        self.ensure_dirs()
        tmp_path = self._state_path.with_suffix(".tmp")
        try:
            with tmp_path.open("w") as handle:
                json.dump(self._cache, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._state_path)
        except (OSError, TypeError) as exc:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Could not write {self._state_path}: {exc}") from exc

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        missing = object()
        previous = data.get(key, missing)
        data[key] = value
        try:
            self._persist()
        except StorageError:
            if previous is missing:
                del data[key]
            else:
                data[key] = previous
            raise
        logger.debug("Stored %s", key)

    def remove(self, key: str) -> bool:
        data = self._load()
        if key not in data:
            return False
        previous = data.pop(key)
        try:
            self._persist()
        except StorageError:
            data[key] = previous
            raise
        return True

    def has(self, key: str) -> bool:
        return key in self._load()

    def keys(self) -> list[str]:
        return sorted(self._load())

    def init(self) -> None:
        self.ensure_dirs()
        if self._state_path is not None and not self._state_path.exists():
            self._cache = self._load()
            self._persist()
