from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

Scheme = Literal["http", "https", "udp"]


class DeviceTarget(BaseModel):
    """Network address of a device, recomputed for every call."""

    model_config = {"frozen": True, "extra": "forbid"}

    protocol: Scheme = "http"
    host: str
    port: int = Field(gt=0, le=65535)

    @property
    def label(self) -> str:
        return f"{self.host}:{self.port}"


class DeviceRegistryEntry(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True, "alias_generator": to_camel}

    mac: str
    ip: str | None = None
    model: str | None = None
    name: str | None = None
    device_id: str | None = None
    last_seen: datetime | None = None


class DiscoveredGoveeDevice(BaseModel):
    model_config = {"extra": "ignore"}

    ip: str | None = None
    mac_address: str | None = None
    device_id: str | None = None
    model: str | None = None
    name: str | None = None
    ble_version: str | None = None
    wifi_version: str | None = None
    source_ip: str | None = None
    source_port: int | None = None
    raw_response: dict[str, Any] = Field(default_factory=dict)


class GoveeCloudDevice(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    device: str
    model: str = ""
    device_name: str = Field(
        default="", validation_alias=AliasChoices("deviceName", "device_name", "name")
    )
    controllable: bool = True
    retrievable: bool = True
    supported_commands: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("supportCmds", "supportedCommands", "supported_commands"),
    )


class GoveeStatus(BaseModel):
    model_config = {"extra": "ignore"}

    online: bool = True
    power: bool | None = None
    brightness: int | None = None
    color: tuple[int, int, int] | None = None
    color_temperature_k: int | None = None


class RokuApp(BaseModel):
    model_config = {"frozen": True, "extra": "ignore"}

    id: str
    name: str
    type: str | None = None
    version: str | None = None


class NowPlaying(BaseModel):
    model_config = {"frozen": True}

    app_id: str | None
    app_name: str


class RokuDeviceInfo(BaseModel):
    model_config = {"extra": "ignore"}

    serial_number: str | None = None
    device_id: str | None = None
    vendor_name: str | None = None
    model_name: str | None = None
    model_number: str | None = None
    friendly_device_name: str | None = None
    software_version: str | None = None
    power_mode: str | None = None
    network_type: str | None = None


class MediaPlayerState(BaseModel):
    model_config = {"extra": "ignore"}

    state: str | None = None
    app_id: str | None = None
    app_name: str | None = None
    position_ms: int | None = None
    duration_ms: int | None = None


class RokuDevice(BaseModel):
    """A Roku found on the network via SSDP."""

    model_config = {"extra": "ignore"}

    ip: str
    location: str | None = None
    serial_number: str | None = None
    name: str | None = None


class BleReading(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    address: str | None = None
    rssi: int | None = None
    name: str | None = None
    manufacturer_data: Any = Field(
        default=None,
        validation_alias=AliasChoices("manufacturerData", "manufacturer_data"),
    )

    @field_validator("address")
    @classmethod
    def _strip_address(cls, value: str | None) -> str | None:
        return value.strip() if isinstance(value, str) else value
