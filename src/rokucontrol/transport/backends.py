from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import aiohttp
import requests

from rokucontrol.bridge import NativeBridge
from rokucontrol.errors import DeviceError, NetworkError

from .base import DeviceRequest, Transport, serialize_body

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 10.0


def _is_success(status: int) -> bool:
    return 200 <= status < 300


class NativeBridgeTransport:
    """Send through the host bridge; POST responses are not read."""

    name = "native"

    def __init__(self, bridge: NativeBridge) -> None:
        self._bridge = bridge

    async def send(self, request: DeviceRequest) -> str:
        if request.is_get:
            return await self._bridge.roku_get(request.url)
        await self._bridge.roku_post(request.url, serialize_body(request.body))
        return ""


class AiohttpTransport:
    """Low-level async HTTP client."""

    name = "aiohttp"

    def __init__(self, timeout: float = DEFAULT_HTTP_TIMEOUT) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def send(self, request: DeviceRequest) -> str:
        data = None if request.body is None else serialize_body(request.body)
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.request(request.method, request.url, data=data) as response:
                    text = await response.text()
                    if not _is_success(response.status):
                        raise NetworkError(f"HTTP {response.status}", status=response.status)
                    return text
        except aiohttp.ClientError as exc:
            raise NetworkError(f"{request.method} {request.url} failed: {exc}") from exc


class RequestsTransport:
    """Generic blocking fetch, run off the event loop.

    This is the last tier: a refused or blocked connection here means the
    device cannot be reached without a native bridge.
    """

    name = "requests"

    def __init__(self, timeout: float = DEFAULT_HTTP_TIMEOUT) -> None:
        self._timeout = timeout

    def _send_blocking(self, request: DeviceRequest) -> str:
        data = None if request.body is None else serialize_body(request.body)
        try:
            response = requests.request(
                request.method, request.url, data=data, timeout=self._timeout
            )
        except requests.ConnectionError as exc:
            raise DeviceError(
                "Direct device requests are blocked on this host. "
                "A native bridge is required.",
                url=request.url,
            ) from exc
        except requests.RequestException as exc:
            raise NetworkError(f"{request.method} {request.url} failed: {exc}") from exc

        if not _is_success(response.status_code):
            raise NetworkError(f"HTTP {response.status_code}", status=response.status_code)
        return response.text

    async def send(self, request: DeviceRequest) -> str:
        return await asyncio.to_thread(self._send_blocking, request)


class FallbackTransport:
    """Try each transport in order; the first success wins."""

    name = "fallback"

    def __init__(self, transports: Sequence[Transport]) -> None:
        if not transports:
            raise DeviceError("No transport available")
        self._transports = list(transports)

    @property
    def transports(self) -> list[Transport]:
        return list(self._transports)

    async def send(self, request: DeviceRequest) -> str:
        last = len(self._transports) - 1
        for index, transport in enumerate(self._transports):
            try:
                return await transport.send(request)
            except Exception as exc:
                if index == last:
                    raise
                logger.warning(
                    "%s transport failed for %s %s, falling back: %s",
                    transport.name,
                    request.method,
                    request.url,
                    exc,
                )
        raise DeviceError("No transport available")


def build_transport_chain(
    bridge: NativeBridge | None = None, timeout: float = DEFAULT_HTTP_TIMEOUT
) -> FallbackTransport:
    transports: list[Transport] = []
    if bridge is not None:
        transports.append(NativeBridgeTransport(bridge))
    transports.append(AiohttpTransport(timeout))
    transports.append(RequestsTransport(timeout))
    return FallbackTransport(transports)
