"""Tests for settings loading and the state store."""

from __future__ import annotations

import pytest

from rokucontrol.config import (
    CONFIG_ENV_VAR,
    GoveeConfig,
    RoomsConfig,
    Settings,
    StorageConfig,
    get_settings,
    load_settings,
    resolve_config_path,
    write_settings,
)
from rokucontrol.errors import StorageError
from rokucontrol.storage import ROKU_IP_KEY, StateStore


def test_settings_roundtrip(tmp_path):
    path = tmp_path / "config.toml"
    settings = Settings(
        storage=StorageConfig(path=str(tmp_path / "data")),
        govee=GoveeConfig(port=4010, api_key='key "quoted"'),
        rooms=RoomsConfig(default_config="~/rooms.json", scan_interval_ms=5000),
    )
    write_settings(settings, path)

    assert load_settings(path) == settings


def test_get_settings_reads_env_path(tmp_path, monkeypatch):
    path = tmp_path / "config.toml"
    write_settings(Settings(govee=GoveeConfig(port=4020)), path)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    assert get_settings().govee.port == 4020


def test_env_path_must_exist(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.toml"))
    with pytest.raises(FileNotFoundError):
        resolve_config_path()

    path, exists = resolve_config_path(allow_missing=True)
    assert path == tmp_path / "missing.toml"
    assert exists is False


def test_invalid_toml_is_value_error(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[roku\nport = ")
    with pytest.raises(ValueError):
        load_settings(path)


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[roku]\nbaud = 9600\n")
    with pytest.raises(ValueError):
        load_settings(path)


def test_store_persists_between_instances(tmp_path):
    store = StateStore(tmp_path)
    store.set(ROKU_IP_KEY, "192.168.1.70")
    store.set("nested", {"a": [1, 2]})

    reopened = StateStore(tmp_path)
    assert reopened.get(ROKU_IP_KEY) == "192.168.1.70"
    assert reopened.get("nested") == {"a": [1, 2]}
    assert reopened.keys() == ["nested", ROKU_IP_KEY]

    assert reopened.remove("nested") is True
    assert reopened.remove("nested") is False
    assert StateStore(tmp_path).has("nested") is False


def test_store_init_creates_state_file(tmp_path):
    store = StateStore(tmp_path / "state")
    store.init()
    assert store.state_path.exists()


def test_corrupt_state_file_is_value_error(tmp_path):
    (tmp_path / "state.json").write_text("{not json")
    with pytest.raises(ValueError):
        StateStore(tmp_path).get(ROKU_IP_KEY)


def test_unserializable_value_is_storage_error(tmp_path):
    store = StateStore(tmp_path)
    with pytest.raises(StorageError):
        store.set("bad", object())


def test_failed_write_keeps_previous_state(tmp_path):
    store = StateStore(tmp_path)
    store.set(ROKU_IP_KEY, "10.0.0.1")

    with pytest.raises(StorageError):
        store.set(ROKU_IP_KEY, object())
    with pytest.raises(StorageError):
        store.set("bad", object())

    assert store.get(ROKU_IP_KEY) == "10.0.0.1"
    assert not store.has("bad")
    assert not store.state_path.with_suffix(".tmp").exists()
    assert StateStore(tmp_path).get(ROKU_IP_KEY) == "10.0.0.1"


def test_in_memory_store_never_touches_disk():
    store = StateStore.in_memory()
    store.set(ROKU_IP_KEY, "10.0.0.1")
    assert store.get(ROKU_IP_KEY) == "10.0.0.1"
    assert store.state_path is None
