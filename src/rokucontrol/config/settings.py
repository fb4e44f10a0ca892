from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .paths import default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "ROKUCONTROL_CONFIG"

ROKU_DEFAULT_PORT = 8060
GOVEE_DEFAULT_PORT = 4003
GOVEE_API_BASE = "https://developer-api.govee.com/v1"


class StorageConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class RokuConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=ROKU_DEFAULT_PORT, ge=1, le=65535)
    timeout: float = Field(default=6.0, gt=0)
    discovery_timeout: float = Field(default=3.0, gt=0)


class GoveeConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=GOVEE_DEFAULT_PORT, ge=1, le=65535)
    discovery_timeout_ms: int = Field(default=3000, ge=100)
    cloud_api_base: str = GOVEE_API_BASE
    cloud_timeout: float = Field(default=10.0, gt=0)
    api_key: str | None = None


class MacrosConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    key_settle_ms: int = Field(default=300, ge=0)
    launch_settle_ms: int = Field(default=1500, ge=0)


class RoomsConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    default_config: str | None = None
    cloud_config_url: str | None = None
    scan_interval_ms: int = Field(default=10000, ge=500)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    storage: StorageConfig = Field(default_factory=StorageConfig)
    roku: RokuConfig = Field(default_factory=RokuConfig)
    govee: GoveeConfig = Field(default_factory=GoveeConfig)
    macros: MacrosConfig = Field(default_factory=MacrosConfig)
    rooms: RoomsConfig = Field(default_factory=RoomsConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.storage.path)


def _toml_string(value: str) -> str:
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    lines = [
        "# rokucontrol configuration",
        "",
        "[storage]",
        f"path = {_toml_string(settings.storage.path)}",
        "",
        "[roku]",
        f"port = {settings.roku.port}",
        f"timeout = {settings.roku.timeout}",
        f"discovery_timeout = {settings.roku.discovery_timeout}",
        "",
        "[govee]",
        f"port = {settings.govee.port}",
        f"discovery_timeout_ms = {settings.govee.discovery_timeout_ms}",
        f"cloud_api_base = {_toml_string(settings.govee.cloud_api_base)}",
        f"cloud_timeout = {settings.govee.cloud_timeout}",
    ]
    if settings.govee.api_key:
        lines.append(f"api_key = {_toml_string(settings.govee.api_key)}")
    lines += [
        "",
        "[macros]",
        f"key_settle_ms = {settings.macros.key_settle_ms}",
        f"launch_settle_ms = {settings.macros.launch_settle_ms}",
        "",
        "[rooms]",
        f"scan_interval_ms = {settings.rooms.scan_interval_ms}",
    ]
    if settings.rooms.default_config:
        lines.append(f"default_config = {_toml_string(settings.rooms.default_config)}")
    if settings.rooms.cloud_config_url:
        lines.append(
            f"cloud_config_url = {_toml_string(settings.rooms.cloud_config_url)}"
        )
    lines.append("")
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
