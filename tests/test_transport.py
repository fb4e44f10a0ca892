from __future__ import annotations

import asyncio

import pytest
import requests

from rokucontrol.errors import DeviceError, InputError, NetworkError, RequestTimeoutError
from rokucontrol.transport import (
    DeviceHttp,
    DeviceRequest,
    FallbackTransport,
    NativeBridgeTransport,
    RequestsTransport,
    build_transport_chain,
    build_url,
    parse_address,
)


class RecordingTransport:
    def __init__(self, name: str, log: list[str], error: Exception | None = None, body: str = ""):
        self.name = name
        self._log = log
        self._error = error
        self._body = body
        self.requests: list[DeviceRequest] = []

    async def send(self, request: DeviceRequest) -> str:
        self._log.append(self.name)
        self.requests.append(request)
        if self._error is not None:
            raise self._error
        return self._body


class SlowTransport:
    name = "slow"

    async def send(self, request: DeviceRequest) -> str:
        await asyncio.sleep(0.05)
        return ""


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("192.168.1.50", "http://192.168.1.50:8060/keypress/Home"),
        ("192.168.1.50:9000", "http://192.168.1.50:9000/keypress/Home"),
        ("https://roku.local/ignored/path", "https://roku.local:8060/keypress/Home"),
        ("[fe80::1]:8061", "http://[fe80::1]:8061/keypress/Home"),
    ],
)
def test_build_url(address, expected):
    assert build_url(address, "keypress/Home", 8060) == expected


def test_parse_address_rejects_blank():
    with pytest.raises(InputError):
        parse_address("   ")


def test_fallback_uses_next_tier_on_failure():
    log: list[str] = []
    chain = FallbackTransport(
        [
            RecordingTransport("native", log, error=NetworkError("bridge down")),
            RecordingTransport("aiohttp", log, body="<ok/>"),
            RecordingTransport("requests", log),
        ]
    )

    body = asyncio.run(chain.send(DeviceRequest(url="http://10.0.0.2:8060/query/apps")))

    assert body == "<ok/>"
    assert log == ["native", "aiohttp"]


def test_fallback_raises_last_tier_error():
    log: list[str] = []
    blocked = DeviceError("Direct device requests are blocked on this host.")
    chain = FallbackTransport(
        [
            RecordingTransport("aiohttp", log, error=NetworkError("refused")),
            RecordingTransport("requests", log, error=blocked),
        ]
    )

    with pytest.raises(DeviceError) as excinfo:
        asyncio.run(chain.send(DeviceRequest(url="http://10.0.0.2:8060/", method="POST")))

    assert excinfo.value is blocked
    assert log == ["aiohttp", "requests"]


def test_fallback_needs_a_transport():
    with pytest.raises(DeviceError):
        FallbackTransport([])


def test_chain_order_with_and_without_bridge(bridge):
    assert [t.name for t in build_transport_chain(bridge).transports] == [
        "native",
        "aiohttp",
        "requests",
    ]
    assert [t.name for t in build_transport_chain().transports] == ["aiohttp", "requests"]


def test_native_transport_posts_without_reading(bridge):
    transport = NativeBridgeTransport(bridge)
    request = DeviceRequest(url="http://10.0.0.2:8060/keypress/Home", method="POST")

    assert asyncio.run(transport.send(request)) == ""
    assert bridge.calls == [("roku_post", ("http://10.0.0.2:8060/keypress/Home", ""))]


def test_requests_transport_reports_blocked_host(monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "request", refuse)
    transport = RequestsTransport(timeout=1.0)

    with pytest.raises(DeviceError) as excinfo:
        asyncio.run(transport.send(DeviceRequest(url="http://10.0.0.2:8060/")))
    assert "native bridge" in excinfo.value.message


def test_device_http_decodes_xml_and_applies_default_port():
    log: list[str] = []
    transport = RecordingTransport("fake", log, body="<apps><app id='12'>Netflix</app></apps>")
    http = DeviceHttp(transport)

    root = asyncio.run(http.request_xml("10.0.0.2", "/query/apps"))

    assert root.find("app").get("id") == "12"
    assert transport.requests[0].url == "http://10.0.0.2:8060/query/apps"
    assert transport.requests[0].method == "GET"


def test_device_http_times_out_with_message():
    http = DeviceHttp(SlowTransport())

    with pytest.raises(RequestTimeoutError) as excinfo:
        asyncio.run(
            http.request("10.0.0.2", "/keypress/Home", timeout=0.01, timeout_message="Too slow")
        )
    assert excinfo.value.message == "Too slow"
