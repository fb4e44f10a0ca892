from __future__ import annotations

import re
from typing import NamedTuple

from rokucontrol.errors import InputError

_SCHEME_RE = re.compile(r"^(https?)://", re.IGNORECASE)


class ParsedAddress(NamedTuple):
    scheme: str
    host: str
    port: int | None


def parse_address(address: str) -> ParsedAddress:
    """Split ``address`` into scheme, host and an embedded port, if any.

    Accepts a bare host, ``host:port``, ``[v6]:port`` or a URL with an
    optional scheme and path; the path is dropped.
    """
    trimmed = (address or "").strip()
    if not trimmed:
        raise InputError("Missing device address")

    scheme = "http"
    match = _SCHEME_RE.match(trimmed)
    if match:
        scheme = match.group(1).lower()
        trimmed = trimmed[match.end() :]

    host_port = trimmed.split("/", 1)[0]
    if not host_port:
        raise InputError(f"Invalid device address: {address!r}")

    host, port = host_port, None
    if host_port.startswith("["):
        end = host_port.find("]")
        if end != -1:
            host = host_port[1:end]
            rest = host_port[end + 1 :]
            if rest.startswith(":") and rest[1:].isdigit():
                port = int(rest[1:])
    elif host_port.count(":") == 1:
        candidate_host, _, candidate_port = host_port.partition(":")
        if candidate_port.isdigit():
            host, port = candidate_host, int(candidate_port)

    if not host:
        raise InputError(f"Invalid device address: {address!r}")
    return ParsedAddress(scheme, host, port)


def format_host(host: str) -> str:
    return f"[{host}]" if ":" in host else host


def normalize_endpoint(endpoint: str) -> str:
    return endpoint if endpoint.startswith("/") else f"/{endpoint}"


def build_url(address: str, endpoint: str, default_port: int) -> str:
    parsed = parse_address(address)
    port = parsed.port or default_port
    return f"{parsed.scheme}://{format_host(parsed.host)}:{port}{normalize_endpoint(endpoint)}"
