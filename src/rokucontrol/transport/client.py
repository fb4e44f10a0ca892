from __future__ import annotations

import logging
from typing import Any
from xml.etree.ElementTree import Element

from rokucontrol.concurrency import with_timeout
from rokucontrol.config import ROKU_DEFAULT_PORT

from .base import DeviceRequest, ResponseType, Transport, decode_body
from .urls import build_url

logger = logging.getLogger(__name__)


class DeviceHttp:
    """HTTP-shaped requests to LAN devices over a transport chain."""

    def __init__(
        self,
        transport: Transport,
        default_timeout: float = 6.0,
        default_port: int = ROKU_DEFAULT_PORT,
    ) -> None:
        self._transport = transport
        self._default_timeout = default_timeout
        self._default_port = default_port

    @property
    def transport(self) -> Transport:
        return self._transport

    async def request(
        self,
        address: str,
        endpoint: str,
        *,
        method: str = "GET",
        body: Any = None,
        response_type: ResponseType = "text",
        timeout: float | None = None,
        timeout_message: str = "Device request timed out",
        default_port: int | None = None,
    ) -> Any:
        url = build_url(address, endpoint, default_port or self._default_port)
        request = DeviceRequest(
            url=url, method=method.upper(), body=body, response_type=response_type
        )
        logger.debug("%s %s", request.method, url)
        raw = await with_timeout(
            self._transport.send(request),
            timeout if timeout is not None else self._default_timeout,
            timeout_message,
        )
        return decode_body(raw, response_type)

    async def request_xml(self, address: str, endpoint: str, **kwargs: Any) -> Element:
        return await self.request(address, endpoint, response_type="xml", **kwargs)
