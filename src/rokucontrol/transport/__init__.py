from __future__ import annotations

from .backends import (
    AiohttpTransport,
    FallbackTransport,
    NativeBridgeTransport,
    RequestsTransport,
    build_transport_chain,
)
from .base import DeviceRequest, ResponseType, Transport, decode_body, serialize_body
from .client import DeviceHttp
from .urls import ParsedAddress, build_url, normalize_endpoint, parse_address

__all__ = [
    "AiohttpTransport",
    "DeviceHttp",
    "DeviceRequest",
    "FallbackTransport",
    "NativeBridgeTransport",
    "ParsedAddress",
    "RequestsTransport",
    "ResponseType",
    "Transport",
    "build_transport_chain",
    "build_url",
    "decode_body",
    "normalize_endpoint",
    "parse_address",
    "serialize_body",
]
