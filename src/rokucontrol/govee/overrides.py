"""Normalization of the loose call shapes used by button and routine configs."""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Literal

from rokucontrol.config import GOVEE_DEFAULT_PORT
from rokucontrol.errors import InputError
from rokucontrol.models import DeviceTarget

_SCHEME_RE = re.compile(r"^(https?)://", re.IGNORECASE)

_ON_WORDS = frozenset({"on", "true", "1", "yes", "start"})
_OFF_WORDS = frozenset({"off", "false", "0", "no", "stop"})

PowerValue = bool | Literal["toggle"]


@dataclass(frozen=True)
class LanOverrides:
    """Per-call LAN target overrides; ``port`` is kept as given and validated later."""

    ip: str | None = None
    port: int | str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.ip and _blank(self.port)


def _blank(value: Any) -> bool:
    return value is None or value == ""


def parse_overrides(ip_or_options: Any = None, port: Any = None) -> LanOverrides:
    """Collapse ``ip_or_options`` and ``port`` into one :class:`LanOverrides`.

    Accepted shapes: a string (ip), a number (port), a mapping with
    ``ip``/``host`` and ``port`` keys, a ``[first, second]`` sequence that is
    re-applied, or an existing ``LanOverrides``. An explicit ``port`` always
    wins. Parsing is idempotent.
    """
    if isinstance(ip_or_options, (list, tuple)):
        first = ip_or_options[0] if len(ip_or_options) > 0 else None
        second = ip_or_options[1] if len(ip_or_options) > 1 else None
        return parse_overrides(first, port if second is None else second)

    if isinstance(ip_or_options, LanOverrides):
        overrides = ip_or_options
    elif isinstance(ip_or_options, Mapping):
        ip = ip_or_options.get("ip") or ip_or_options.get("host")
        overrides = LanOverrides(
            ip=str(ip).strip() if ip else None,
            port=ip_or_options.get("port"),
        )
    elif isinstance(ip_or_options, str) and ip_or_options.strip():
        overrides = LanOverrides(ip=ip_or_options.strip())
    elif (
        isinstance(ip_or_options, (int, float))
        and not isinstance(ip_or_options, bool)
        and math.isfinite(ip_or_options)
    ):
        overrides = LanOverrides(port=int(ip_or_options))
    else:
        overrides = LanOverrides()

    if not _blank(port):
        overrides = replace(overrides, port=port)
    return overrides


def coerce_port(value: Any) -> int | None:
    """Return ``value`` as a usable port number, or None."""
    if _blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    port = int(number)
    if port <= 0 or port > 65535:
        return None
    return port


def _split_host(candidate: str) -> tuple[str, int | None]:
    if candidate.startswith("["):
        end = candidate.find("]")
        if end != -1:
            rest = candidate[end + 1 :]
            return candidate[1:end], coerce_port(rest[1:]) if rest.startswith(":") else None
    if candidate.count(":") == 1:
        host, _, port = candidate.partition(":")
        if port.isdigit():
            return host, int(port)
    return candidate, None


def resolve_target(
    overrides: LanOverrides | None = None,
    stored_ip: str | None = None,
    stored_port: Any = None,
    default_port: int = GOVEE_DEFAULT_PORT,
    protocol: str = "udp",
) -> DeviceTarget:
    """Merge overrides over stored values over the protocol default.

    Port precedence: explicit override, then a port embedded in the host,
    then the stored port, then ``default_port``. An unusable port falls
    back to ``default_port``.
    """
    overrides = overrides or LanOverrides()
    candidate = (overrides.ip or "").strip() or (stored_ip or "").strip()
    if not candidate:
        raise InputError("No device IP address configured or passed in")

    match = _SCHEME_RE.match(candidate)
    if match:
        protocol = match.group(1).lower()
        candidate = candidate[match.end() :]
    candidate = candidate.split("/", 1)[0]

    host, embedded_port = _split_host(candidate)
    if not host:
        raise InputError(f"Invalid device address: {overrides.ip or stored_ip!r}")

    if not _blank(overrides.port):
        port = coerce_port(overrides.port)
    elif embedded_port is not None:
        port = embedded_port
    else:
        port = coerce_port(stored_port) or default_port

    return DeviceTarget(protocol=protocol, host=host, port=port or default_port)


def normalize_power(raw: Any) -> PowerValue:
    """Tolerant on/off parser; ``"toggle"`` is passed through."""
    if isinstance(raw, (list, tuple)):
        return normalize_power(raw[0]) if raw else False
    if isinstance(raw, str):
        word = raw.strip().lower()
        if word == "toggle":
            return "toggle"
        if word in _ON_WORDS:
            return True
        if word in _OFF_WORDS:
            return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw > 0
    return bool(raw)
