from __future__ import annotations

from .cloud import GoveeCloud
from .commands import (
    COMMANDS,
    OCEAN_BLUE,
    PRESETS,
    SUNSET_GLOW,
    WARM_WHITE,
    build_cloud_command,
    build_lan_envelope,
    encode_lan_envelope,
    parse_rgb,
)
from .controller import GoveeController, GoveeSettings
from .lan import GoveeLan
from .overrides import LanOverrides, coerce_port, normalize_power, parse_overrides, resolve_target
from .registry import (
    DeviceRegistry,
    is_likely_ip,
    normalize_identifier,
    resolve_identifier,
    resolve_overrides_for_step,
)

__all__ = [
    "COMMANDS",
    "OCEAN_BLUE",
    "PRESETS",
    "SUNSET_GLOW",
    "WARM_WHITE",
    "DeviceRegistry",
    "GoveeCloud",
    "GoveeController",
    "GoveeLan",
    "GoveeSettings",
    "LanOverrides",
    "build_cloud_command",
    "build_lan_envelope",
    "coerce_port",
    "encode_lan_envelope",
    "is_likely_ip",
    "normalize_identifier",
    "normalize_power",
    "parse_overrides",
    "parse_rgb",
    "resolve_identifier",
    "resolve_overrides_for_step",
    "resolve_target",
]
