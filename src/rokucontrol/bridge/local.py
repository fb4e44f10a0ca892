from __future__ import annotations

import asyncio
import ipaddress
import json
import logging
import socket
import struct
import time
from typing import Any
from urllib.parse import urlparse

import aiohttp

from rokucontrol.config import GOVEE_API_BASE, GOVEE_DEFAULT_PORT
from rokucontrol.errors import DeviceError, InputError, NetworkError

logger = logging.getLogger(__name__)

MCAST_GRP = "239.255.255.250"
GOVEE_SCAN_PORT = 4001
GOVEE_LISTEN_PORT = 4002
SSDP_PORT = 1900
UDP_TIMEOUT = 1.5

SSDP_SEARCH = (
    "M-SEARCH * HTTP/1.1\r\n"
    f"HOST: {MCAST_GRP}:{SSDP_PORT}\r\n"
    'MAN: "ssdp:discover"\r\n'
    "MX: 3\r\n"
    "ST: roku:ecp\r\n"
    "\r\n"
)


def _govee_scan_payload() -> bytes:
    return json.dumps({"msg": {"cmd": "scan", "data": {"account_topic": "reserve"}}}).encode()


def _parse_scan_reply(raw: bytes, addr: tuple[str, int]) -> dict[str, Any] | None:
    try:
        response = json.loads(raw.decode("utf-8", errors="replace"))
    except json.JSONDecodeError:
        logger.debug("Ignoring unparsable reply from %s", addr[0])
        return None

    device: dict[str, Any] = {
        "source_ip": addr[0],
        "source_port": addr[1],
        "raw_response": response,
    }
    data = (response.get("msg") or {}).get("data") or {}
    if "ip" in data:
        device["ip"] = data["ip"]
    if "device" in data:
        # the device field carries the MAC
        device["mac_address"] = data["device"]
        device["device_id"] = data["device"]
    if "sku" in data:
        device["model"] = data["sku"]
    if "deviceName" in data:
        device["name"] = data["deviceName"]
    if "bleVersionHard" in data:
        device["ble_version"] = data["bleVersionHard"]
    if "wifiVersionHard" in data:
        device["wifi_version"] = data["wifiVersionHard"]
    return device


def _parse_status_reply(raw: bytes) -> dict[str, Any]:
    try:
        response = json.loads(raw.decode("utf-8", errors="replace"))
    except json.JSONDecodeError as exc:
        raise DeviceError(f"Invalid status response: {exc}") from exc

    status: dict[str, Any] = {"online": True}
    data = (response.get("msg") or {}).get("data") or {}
    if "onOff" in data:
        status["power"] = data["onOff"] == 1
    if "brightness" in data:
        status["brightness"] = data["brightness"]
    color = data.get("color")
    if isinstance(color, dict) and all(k in color for k in ("r", "g", "b")):
        status["color"] = (color["r"], color["g"], color["b"])
    if data.get("colorTemInKelvin"):
        status["color_temperature_k"] = data["colorTemInKelvin"]
    return status


def _ssdp_location_ip(response: str) -> tuple[str | None, str | None]:
    location = None
    for line in response.splitlines():
        line = line.strip()
        if line.lower().startswith("location:"):
            location = line[len("location:") :].strip()
    if not location:
        return None, None
    return urlparse(location).hostname, location


def _is_private_ipv4(value: str) -> bool:
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return False
    return address.version == 4 and address.is_private and not address.is_loopback


class LocalBridge:
    """Bridge implementation for a Python host with direct network access."""

    def __init__(
        self,
        http_timeout: float = 6.0,
        cloud_api_base: str = GOVEE_API_BASE,
        cloud_timeout: float = 10.0,
    ) -> None:
        self._http_timeout = http_timeout
        self._cloud_api_base = cloud_api_base.rstrip("/")
        self._cloud_timeout = cloud_timeout

    async def _http(self, method: str, url: str, timeout: float, **kwargs: Any) -> str:
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        try:
            async with aiohttp.ClientSession(timeout=client_timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    text = await response.text()
                    if response.status >= 400:
                        raise NetworkError(
                            f"HTTP {response.status}: {text[:200]}", status=response.status
                        )
                    return text
        except aiohttp.ClientError as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

    async def roku_get(self, url: str) -> str:
        return await self._http("GET", url, self._http_timeout)

    async def roku_post(self, url: str, body: str) -> None:
        await self._http("POST", url, self._http_timeout, data=body)

    async def roku_discover(self, timeout_secs: float) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._ssdp_search, timeout_secs)

    def _ssdp_search(self, timeout_secs: float) -> list[dict[str, Any]]:
        devices: dict[str, dict[str, Any]] = {}
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.settimeout(0.2)
            sock.sendto(SSDP_SEARCH.encode(), (MCAST_GRP, SSDP_PORT))
            deadline = time.monotonic() + timeout_secs
            while time.monotonic() < deadline:
                try:
                    raw, _addr = sock.recvfrom(2048)
                except socket.timeout:
                    continue
                response = raw.decode("utf-8", errors="replace")
                if "roku:ecp" not in response:
                    continue
                ip, location = _ssdp_location_ip(response)
                if ip and ip not in devices:
                    devices[ip] = {"ip": ip, "location": location}
        logger.debug("SSDP search found %d Roku device(s)", len(devices))
        return list(devices.values())

    async def govee_send(self, host: str, port: int, body: str) -> None:
        host = host.strip()
        if not host:
            raise InputError("Missing host")
        await asyncio.to_thread(self._udp_send, host, port or GOVEE_DEFAULT_PORT, body)

    def _udp_send(self, host: str, port: int, body: str) -> None:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.settimeout(UDP_TIMEOUT)
                sock.sendto(body.encode("utf-8"), (host, port))
        except OSError as exc:
            raise NetworkError(f"UDP send to {host}:{port} failed: {exc}") from exc
        logger.debug("Sent %d bytes to %s:%d", len(body), host, port)

    async def govee_discover(self, timeout_ms: int) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._govee_scan, timeout_ms / 1000)

    def _govee_scan(self, timeout: float) -> list[dict[str, Any]]:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("", GOVEE_LISTEN_PORT))
        except OSError as exc:
            raise NetworkError(f"Failed to bind to UDP {GOVEE_LISTEN_PORT}: {exc}") from exc

        devices: list[dict[str, Any]] = []
        with sock:
            try:
                mreq = struct.pack("4sl", socket.inet_aton(MCAST_GRP), socket.INADDR_ANY)
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
            except OSError as exc:
                # unicast and broadcast replies still arrive
                logger.debug("Could not join multicast group: %s", exc)

            sock.settimeout(0.1)
            try:
                sock.sendto(_govee_scan_payload(), (MCAST_GRP, GOVEE_SCAN_PORT))
            except OSError as exc:
                raise NetworkError(f"Failed to send discovery probe: {exc}") from exc
            logger.debug("Sent Govee discovery probe to %s:%d", MCAST_GRP, GOVEE_SCAN_PORT)

            deadline = time.monotonic() + timeout
            while time.monotonic() < deadline:
                try:
                    raw, addr = sock.recvfrom(2048)
                except socket.timeout:
                    continue
                device = _parse_scan_reply(raw, addr)
                if device is not None:
                    devices.append(device)
        return devices

    async def govee_status(self, host: str, port: int) -> dict[str, Any]:
        host = host.strip()
        if not host:
            raise InputError("Missing host")
        return await asyncio.to_thread(self._govee_status, host, port or GOVEE_DEFAULT_PORT)

    def _govee_status(self, host: str, port: int) -> dict[str, Any]:
        query = json.dumps({"msg": {"cmd": "devStatus", "data": {}}}).encode()
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.settimeout(UDP_TIMEOUT)
            try:
                sock.sendto(query, (host, port))
                raw, _addr = sock.recvfrom(2048)
            except socket.timeout:
                return {"online": False}
            except OSError as exc:
                raise NetworkError(f"Status query to {host}:{port} failed: {exc}") from exc
        return _parse_status_reply(raw)

    async def govee_cloud_control(
        self, api_key: str, device: str, model: str, cmd: dict[str, Any]
    ) -> None:
        url = f"{self._cloud_api_base}/devices/control"
        headers = {"Govee-API-Key": api_key, "Content-Type": "application/json"}
        payload = {"device": device, "model": model, "cmd": cmd}
        await self._http("PUT", url, self._cloud_timeout, json=payload, headers=headers)

    async def ble_scan(self, timeout_ms: int) -> list[dict[str, Any]]:
        raise DeviceError("BLE scanning is not available on this host")

    async def is_on_wifi(self) -> bool:
        return await asyncio.to_thread(self._local_address_is_private)

    def _local_address_is_private(self) -> bool:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.connect((MCAST_GRP, SSDP_PORT))
                local_ip = sock.getsockname()[0]
        except OSError as exc:
            raise NetworkError(f"Failed to check network: {exc}") from exc
        return _is_private_ipv4(local_ip)
