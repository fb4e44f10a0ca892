from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

DEFAULT_RSSI_THRESHOLD = -70

DetectionMode = Literal["strongest_signal", "manual"]


class Beacon(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    address: str
    name: str | None = None
    rssi_threshold: int = Field(
        default=DEFAULT_RSSI_THRESHOLD,
        validation_alias=AliasChoices("rssiThreshold", "rssi_threshold"),
        serialization_alias="rssiThreshold",
    )

    @field_validator("rssi_threshold", mode="before")
    @classmethod
    def _default_threshold(cls, value: object) -> object:
        return DEFAULT_RSSI_THRESHOLD if value is None else value


class Room(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    name: str = ""
    emoji: str = ""
    beacons: list[Beacon] = Field(default_factory=list)
    devices: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return f"{self.emoji or '📍'} {self.name or self.id}"


class RoomSettings(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    auto_detect: bool = Field(
        default=False,
        validation_alias=AliasChoices("autoDetect", "auto_detect"),
        serialization_alias="autoDetect",
    )
    scan_interval_ms: int = Field(
        default=10000,
        gt=0,
        validation_alias=AliasChoices("scanIntervalMs", "scanInterval", "scan_interval_ms"),
        serialization_alias="scanIntervalMs",
    )
    detection_mode: DetectionMode = Field(
        default="strongest_signal",
        validation_alias=AliasChoices("detectionMode", "detection_mode"),
        serialization_alias="detectionMode",
    )
    fallback_room_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("fallbackRoomId", "fallbackRoom", "fallback_room_id"),
        serialization_alias="fallbackRoomId",
    )


class RoomConfig(BaseModel):
    model_config = {"extra": "ignore"}

    rooms: list[Room] = Field(default_factory=list)
    settings: RoomSettings = Field(default_factory=RoomSettings)

    @classmethod
    def minimal(cls, scan_interval_ms: int = 10000) -> RoomConfig:
        """Empty configuration used when nothing else can be loaded."""
        return cls(settings=RoomSettings(detection_mode="manual", scan_interval_ms=scan_interval_ms))
