"""Roku External Control Protocol client."""

from __future__ import annotations

import logging
import re
from urllib.parse import quote
from xml.etree.ElementTree import Element

from rokucontrol.bridge import NativeBridge
from rokucontrol.config import ROKU_DEFAULT_PORT
from rokucontrol.errors import ControlError, DeviceError, InputError
from rokucontrol.models import MediaPlayerState, NowPlaying, RokuApp, RokuDevice, RokuDeviceInfo
from rokucontrol.storage import ROKU_IP_KEY, StateStore
from rokucontrol.transport import DeviceHttp

logger = logging.getLogger(__name__)

ROKU_COMMAND_TIMEOUT = 6.0

# used when /query/apps is blocked by the device
COMMON_APPS: tuple[RokuApp, ...] = (
    RokuApp(id="12", name="Netflix"),
    RokuApp(id="13", name="Amazon Prime Video"),
    RokuApp(id="2213", name="Hulu"),
    RokuApp(id="837", name="YouTube"),
    RokuApp(id="291097", name="Disney+"),
    RokuApp(id="593099", name="Apple TV+"),
    RokuApp(id="61322", name="HBO Max"),
    RokuApp(id="74519", name="Peacock TV"),
    RokuApp(id="151908", name="Plex"),
    RokuApp(id="2285", name="Spotify"),
    RokuApp(id="19977", name="Pandora"),
    RokuApp(id="50539", name="The Roku Channel"),
)

_MS_RE = re.compile(r"(\d+)")


def app_name_for(app_id: str) -> str | None:
    for app in COMMON_APPS:
        if app.id == app_id:
            return app.name
    return None


def _text(node: Element | None) -> str | None:
    if node is None or node.text is None:
        return None
    return node.text.strip() or None


def _millis(node: Element | None) -> int | None:
    value = _text(node)
    if value is None:
        return None
    match = _MS_RE.search(value)
    return int(match.group(1)) if match else None


def parse_apps(root: Element) -> list[RokuApp]:
    return [
        RokuApp(
            id=app.get("id", ""),
            name=(app.text or "").strip(),
            type=app.get("type"),
            version=app.get("version"),
        )
        for app in root.iter("app")
    ]


def parse_active_app(root: Element) -> NowPlaying | None:
    app = root.find("app") if root.tag != "app" else root
    if app is None:
        return None
    return NowPlaying(app_id=app.get("id"), app_name=(app.text or "").strip())


def parse_device_info(root: Element) -> RokuDeviceInfo:
    fields = {child.tag.replace("-", "_"): _text(child) for child in root}
    return RokuDeviceInfo.model_validate(fields)


def parse_media_player(root: Element) -> MediaPlayerState:
    plugin = root.find("plugin")
    return MediaPlayerState(
        state=root.get("state"),
        app_id=plugin.get("id") if plugin is not None else None,
        app_name=plugin.get("name") if plugin is not None else None,
        position_ms=_millis(root.find("position")),
        duration_ms=_millis(root.find("duration")),
    )


class RokuClient:
    def __init__(
        self,
        http: DeviceHttp,
        store: StateStore,
        bridge: NativeBridge | None = None,
        port: int = ROKU_DEFAULT_PORT,
        timeout: float = ROKU_COMMAND_TIMEOUT,
        discovery_timeout: float = 3.0,
    ) -> None:
        self._http = http
        self._store = store
        self._bridge = bridge
        self._port = port
        self._timeout = timeout
        self._discovery_timeout = discovery_timeout

    @property
    def saved_ip(self) -> str | None:
        return self._store.get(ROKU_IP_KEY)

    def save_ip(self, ip: str) -> None:
        ip = ip.strip()
        if not ip:
            raise InputError("Roku IP address cannot be empty")
        self._store.set(ROKU_IP_KEY, ip)
        logger.info("Saved Roku address %s", ip)

    def _require_ip(self) -> str:
        ip = self.saved_ip
        if not ip:
            raise InputError("No Roku IP configured")
        return ip

    async def _post(self, endpoint: str, timeout_message: str) -> None:
        await self._http.request(
            self._require_ip(),
            endpoint,
            method="POST",
            timeout=self._timeout,
            timeout_message=timeout_message,
            default_port=self._port,
        )

    async def _query(self, endpoint: str) -> Element:
        return await self._http.request_xml(
            self._require_ip(),
            endpoint,
            timeout=self._timeout,
            timeout_message="Roku query timed out",
            default_port=self._port,
        )

    async def send_key(self, key: str) -> None:
        if not key:
            raise InputError("Missing key name")
        await self._post(f"/keypress/{quote(key, safe='')}", "Roku command timed out")
        logger.debug("Sent key %s", key)

    async def launch_app(self, app_id: str, content_id: str | None = None) -> None:
        if not app_id:
            raise InputError("Missing app id")
        endpoint = f"/launch/{quote(str(app_id), safe='')}"
        if content_id:
            endpoint += f"?contentID={quote(str(content_id), safe='')}"
        await self._post(endpoint, "App launch timed out")
        logger.debug("Launched app %s", app_id)

    async def get_device_info(self) -> RokuDeviceInfo:
        return parse_device_info(await self._query("/query/device-info"))

    async def get_apps(self) -> list[RokuApp]:
        if not self.saved_ip:
            return []
        try:
            return parse_apps(await self._query("/query/apps"))
        except ControlError as exc:
            logger.warning("Apps query blocked, using common apps: %s", exc)
            return list(COMMON_APPS)

    async def get_now_playing(self) -> NowPlaying | None:
        if not self.saved_ip:
            return None
        try:
            return parse_active_app(await self._query("/query/active-app"))
        except ControlError as exc:
            logger.warning("Failed to get now playing: %s", exc)
            return None

    async def get_media_player(self) -> MediaPlayerState:
        return parse_media_player(await self._query("/query/media-player"))

    async def discover(self, timeout_secs: float | None = None) -> list[RokuDevice]:
        if self._bridge is None:
            raise DeviceError("Roku discovery requires a native bridge")
        found = await self._bridge.roku_discover(timeout_secs or self._discovery_timeout)
        return [RokuDevice.model_validate(item) for item in found or []]

    async def test_connection(self) -> bool:
        await self.get_device_info()
        return True
