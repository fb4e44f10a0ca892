from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal, Protocol
from xml.etree import ElementTree

from rokucontrol.errors import DeviceError

ResponseType = Literal["text", "json", "xml"]


@dataclass(frozen=True)
class DeviceRequest:
    url: str
    method: str = "GET"
    body: Any = None
    response_type: ResponseType = "text"

    @property
    def is_get(self) -> bool:
        return self.method.upper() == "GET"


class Transport(Protocol):
    name: str

    async def send(self, request: DeviceRequest) -> str:
        """Issue the request and return the raw response body."""
        ...


def serialize_body(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    return json.dumps(body)


def decode_body(raw: str, response_type: ResponseType) -> Any:
    if response_type == "text":
        return raw
    if response_type == "json":
        try:
            return json.loads(raw) if raw else None
        except json.JSONDecodeError as exc:
            raise DeviceError(f"Device returned invalid JSON: {exc}") from exc
    try:
        return ElementTree.fromstring(raw)
    except ElementTree.ParseError as exc:
        raise DeviceError(f"Device returned invalid XML: {exc}") from exc
