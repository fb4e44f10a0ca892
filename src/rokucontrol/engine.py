from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from rokucontrol.bridge import BleScanner, NativeBridge
from rokucontrol.concurrency import ExecutionFlags
from rokucontrol.config import Settings, data_dir_from_settings, expand_path
from rokucontrol.govee import DeviceRegistry, GoveeCloud, GoveeController, GoveeLan
from rokucontrol.handlers import HandlerRegistry
from rokucontrol.macros import MacroLibrary, MacroSequencer
from rokucontrol.roku import RokuClient
from rokucontrol.rooms import RoomLocator
from rokucontrol.status import StatusCallback
from rokucontrol.storage import StateStore
from rokucontrol.transport import DeviceHttp, build_transport_chain

logger = logging.getLogger(__name__)


@dataclass
class ControlEngine:
    """Every component wired together, sharing one store and one set of flags."""

    settings: Settings
    store: StateStore
    http: DeviceHttp
    roku: RokuClient
    govee: GoveeController
    macros: MacroLibrary
    sequencer: MacroSequencer
    rooms: RoomLocator
    handlers: HandlerRegistry
    flags: ExecutionFlags = field(default_factory=ExecutionFlags)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        bridge: NativeBridge | None = None,
        scanner: BleScanner | None = None,
        store: StateStore | None = None,
        on_status: StatusCallback | None = None,
    ) -> ControlEngine:
        if store is None:
            store = StateStore(data_dir_from_settings(settings))
        flags = ExecutionFlags()

        http = DeviceHttp(
            build_transport_chain(bridge, timeout=settings.roku.timeout),
            default_timeout=settings.roku.timeout,
            default_port=settings.roku.port,
        )
        roku = RokuClient(
            http,
            store,
            bridge,
            port=settings.roku.port,
            timeout=settings.roku.timeout,
            discovery_timeout=settings.roku.discovery_timeout,
        )

        registry = DeviceRegistry(store)
        cloud = GoveeCloud(
            store,
            bridge,
            api_base=settings.govee.cloud_api_base,
            timeout=settings.govee.cloud_timeout,
            default_api_key=settings.govee.api_key,
        )
        govee = GoveeController(
            store,
            GoveeLan(bridge),
            cloud,
            registry,
            default_port=settings.govee.port,
            discovery_timeout_ms=settings.govee.discovery_timeout_ms,
            on_status=on_status,
        )

        library = MacroLibrary(store)
        sequencer = MacroSequencer(
            library,
            roku,
            flags,
            key_settle_ms=settings.macros.key_settle_ms,
            launch_settle_ms=settings.macros.launch_settle_ms,
            on_status=on_status,
        )

        default_rooms: Path | None = None
        if settings.rooms.default_config:
            default_rooms = expand_path(settings.rooms.default_config)
        if scanner is None and bridge is not None:
            scanner = bridge.ble_scan
        rooms = RoomLocator(
            store,
            scanner,
            flags,
            default_config_path=default_rooms,
            cloud_config_url=settings.rooms.cloud_config_url,
            scan_interval_ms=settings.rooms.scan_interval_ms,
            on_status=on_status,
        )

        handlers = HandlerRegistry(roku, govee, sequencer, on_status=on_status)
        logger.debug("Engine ready (native bridge: %s)", bridge is not None)
        return cls(
            settings=settings,
            store=store,
            http=http,
            roku=roku,
            govee=govee,
            macros=library,
            sequencer=sequencer,
            rooms=rooms,
            handlers=handlers,
            flags=flags,
        )
