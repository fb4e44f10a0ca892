from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter


class KeyStep(BaseModel):
    model_config = {"frozen": True, "extra": "ignore"}

    type: Literal["key"] = "key"
    key: str = Field(min_length=1)


class LaunchStep(BaseModel):
    model_config = {"frozen": True, "extra": "ignore", "populate_by_name": True}

    type: Literal["launch"] = "launch"
    app_id: str = Field(min_length=1, validation_alias=AliasChoices("appId", "app_id"), serialization_alias="appId")
    params: str = ""
    label: str = ""


class DelayStep(BaseModel):
    model_config = {"frozen": True, "extra": "ignore", "populate_by_name": True}

    type: Literal["delay"] = "delay"
    duration_ms: int = Field(
        ge=0,
        validation_alias=AliasChoices("durationMs", "duration_ms", "duration"),
        serialization_alias="durationMs",
    )


MacroStep = Annotated[Union[KeyStep, LaunchStep, DelayStep], Field(discriminator="type")]

STEP_ADAPTER: TypeAdapter[MacroStep] = TypeAdapter(MacroStep)


class Macro(BaseModel):
    model_config = {"frozen": True, "extra": "ignore"}

    id: str
    name: str
    steps: tuple[MacroStep, ...]
    favorite: bool = False
