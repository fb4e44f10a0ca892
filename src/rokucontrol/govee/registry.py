from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from rokucontrol.config import GOVEE_DEFAULT_PORT
from rokucontrol.models import DeviceRegistryEntry, DiscoveredGoveeDevice, RoutineDevice, RoutineStep
from rokucontrol.storage import DEVICE_REGISTRY_KEY, StateStore

from .overrides import LanOverrides, coerce_port

logger = logging.getLogger(__name__)

_GOVEE_PREFIX_RE = re.compile(r"^govee:", re.IGNORECASE)
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_IPV4_RE = re.compile(r"^\d{1,3}(\.\d{1,3}){3}(:\d{1,5})?$")
_BRACKETED_IPV6_RE = re.compile(r"^\[[0-9a-fA-F:]+\](:\d{1,5})?$")
_BARE_IPV6_RE = re.compile(r"^[0-9a-fA-F:]+$")


def normalize_identifier(value: Any) -> str:
    """Canonical form used to compare MACs, device ids, IPs and names."""
    if not isinstance(value, str):
        return ""
    normalized = value.strip()
    if not normalized:
        return ""
    normalized = _GOVEE_PREFIX_RE.sub("", normalized)
    normalized = _SCHEME_RE.sub("", normalized)
    normalized = re.sub(r"-+", ":", normalized)
    normalized = normalized.removesuffix("/")
    return normalized.lower()


def is_likely_ip(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    trimmed = value.strip()
    if not trimmed:
        return False
    if _IPV4_RE.match(trimmed) or _BRACKETED_IPV6_RE.match(trimmed):
        return True
    return "::" in trimmed and bool(_BARE_IPV6_RE.match(trimmed))


class DeviceRegistry:
    """Govee LAN devices seen by discovery, keyed by MAC."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def _load(self) -> dict[str, dict[str, Any]]:
        raw = self._store.get(DEVICE_REGISTRY_KEY) or {}
        govee = raw.get("govee") if isinstance(raw, dict) else None
        return dict(govee) if isinstance(govee, dict) else {}

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        self._store.set(DEVICE_REGISTRY_KEY, {"govee": entries})

    def entries(self) -> list[DeviceRegistryEntry]:
        result = []
        for mac, data in self._load().items():
            try:
                result.append(DeviceRegistryEntry.model_validate({"mac": mac, **data}))
            except ValidationError as exc:
                logger.warning("Skipping malformed registry entry %s: %s", mac, exc)
        return result

    def get_by_mac(self, mac: str) -> DeviceRegistryEntry | None:
        data = self._load().get(mac)
        if data is None:
            return None
        return DeviceRegistryEntry.model_validate({"mac": mac, **data})

    def register(
        self, device: DiscoveredGoveeDevice | Mapping[str, Any]
    ) -> DeviceRegistryEntry | None:
        if not isinstance(device, DiscoveredGoveeDevice):
            device = DiscoveredGoveeDevice.model_validate(device)

        mac = device.mac_address or device.device_id
        if not mac:
            logger.warning("Cannot register Govee device without MAC address: %s", device.ip)
            return None

        entry = DeviceRegistryEntry(
            mac=mac,
            ip=device.ip,
            model=device.model,
            name=device.name,
            device_id=device.device_id,
            last_seen=datetime.now(timezone.utc),
        )
        entries = self._load()
        entries[mac] = entry.model_dump(mode="json")
        self._save(entries)
        logger.info("Registered Govee device %s -> %s", mac, device.ip)
        return entry

    def register_all(
        self, devices: Iterable[DiscoveredGoveeDevice | Mapping[str, Any]]
    ) -> list[DeviceRegistryEntry]:
        registered = []
        for device in devices:
            entry = self.register(device)
            if entry is not None:
                registered.append(entry)
        return registered

    def find(self, identifier: str | None) -> DeviceRegistryEntry | None:
        normalized = normalize_identifier(identifier)
        if not normalized:
            return None
        for entry in self.entries():
            candidates = (entry.mac, entry.device_id, entry.ip, entry.name)
            if any(normalize_identifier(candidate) == normalized for candidate in candidates):
                return entry
        return None


def _step_candidates(step: RoutineStep) -> list[str]:
    candidates: list[str] = []

    def push(value: Any) -> None:
        if isinstance(value, str) and value.strip():
            candidates.append(value)

    push(step.device)
    push(step.mac)
    push(step.ip)
    for item in step.devices:
        if isinstance(item, RoutineDevice):
            push(item.device)
            push(item.ip)
        else:
            push(item)
    return candidates


def resolve_identifier(
    identifier: str, registry: DeviceRegistry, port: int = GOVEE_DEFAULT_PORT
) -> LanOverrides | None:
    cleaned = _GOVEE_PREFIX_RE.sub("", identifier.strip())
    if not cleaned:
        return None
    if is_likely_ip(cleaned):
        return LanOverrides(ip=cleaned, port=port)
    entry = registry.find(cleaned)
    if entry is not None and entry.ip:
        return LanOverrides(ip=entry.ip, port=port)
    return None


def resolve_overrides_for_step(step: RoutineStep, registry: DeviceRegistry) -> LanOverrides | None:
    """LAN overrides for a routine step, or None when only the Cloud path can reach it."""
    port = coerce_port(step.port) or GOVEE_DEFAULT_PORT
    for candidate in _step_candidates(step):
        overrides = resolve_identifier(candidate, registry, port)
        if overrides is not None:
            return overrides
    return None
