from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

RoutineStepType = Literal["power", "brightness", "color", "colorTemp", "scene", "wait"]


class RoutineDevice(BaseModel):
    model_config = {"extra": "ignore"}

    device: str | None = None
    ip: str | None = None


class RoutineStep(BaseModel):
    """One step of a light routine, as written in button configs."""

    model_config = {"extra": "ignore"}

    type: RoutineStepType
    value: Any = None
    device: str | None = None
    mac: str | None = None
    ip: str | None = None
    port: int | None = None
    model: str | None = None
    devices: list[str | RoutineDevice] = Field(default_factory=list)

    def identifier(self) -> str | None:
        return self.mac or self.device


@dataclass
class FanOutResult:
    """Outcome of sending one command to several devices concurrently."""

    successes: int = 0
    failures: int = 0
    errors: list[Exception] = field(default_factory=list)
