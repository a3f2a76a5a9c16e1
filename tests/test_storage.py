"""Tests for token storage strategies and the device identifier."""

from __future__ import annotations

import json
import re
import stat
from pathlib import Path

import pytest

from authbroker import device
from authbroker.exceptions import ConfigError
from authbroker.storage import (
    FileTokenStorage,
    SettingsTokenStorage,
    TokenStorage,
    create_storage,
)


class TestFileTokenStorage:
    def test_empty_when_nothing_stored(self, isolated_config: Path) -> None:
        assert FileTokenStorage("dev").retrieve() == ""

    def test_store_and_retrieve(self, isolated_config: Path) -> None:
        FileTokenStorage("dev").store('{"access_token": "x"}')
        assert FileTokenStorage("dev").retrieve() == '{"access_token": "x"}'

    def test_file_location_and_permissions(self, isolated_config: Path) -> None:
        storage = FileTokenStorage("dev")
        storage.store("secret")

        assert storage.path == isolated_config / "data" / "authbroker" / "tokens" / "dev.txt"
        mode = stat.S_IMODE(storage.path.stat().st_mode)
        assert mode == 0o600

    def test_storing_empty_deletes(self, isolated_config: Path) -> None:
        storage = FileTokenStorage("dev")
        storage.store("secret")
        storage.store("")

        assert not storage.path.exists()
        assert storage.retrieve() == ""
        storage.store("")  # clearing twice is fine

    def test_identifiers_are_separate(self, isolated_config: Path) -> None:
        FileTokenStorage("a").store("one")
        FileTokenStorage("b").store("two")
        assert FileTokenStorage("a").retrieve() == "one"
        assert FileTokenStorage("b").retrieve() == "two"


class TestSettingsTokenStorage:
    def test_store_retrieve_and_clear(self, isolated_config: Path) -> None:
        storage = SettingsTokenStorage("dev")
        assert storage.retrieve() == ""

        storage.store("value")
        assert SettingsTokenStorage("dev").retrieve() == "value"

        storage.store("")
        assert storage.retrieve() == ""

    def test_keeps_other_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

        SettingsTokenStorage("dev", path=path).store("value")

        assert json.loads(path.read_text(encoding="utf-8")) == {"theme": "dark", "dev": "value"}

    def test_non_string_value_reads_as_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"dev": 42}), encoding="utf-8")
        assert SettingsTokenStorage("dev", path=path).retrieve() == ""

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_invalid_file(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "settings.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid settings file"):
            SettingsTokenStorage("dev", path=path).retrieve()


class TestCreateStorage:
    def test_kinds(self, isolated_config: Path) -> None:
        assert isinstance(create_storage("file", "x"), FileTokenStorage)
        assert isinstance(create_storage("settings", "x"), SettingsTokenStorage)
        assert create_storage("none", "x") is None

    def test_unknown_kind(self) -> None:
        with pytest.raises(ConfigError, match="Unknown token storage"):
            create_storage("keychain", "x")

    def test_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            TokenStorage()  # type: ignore[abstract]


class TestDeviceId:
    def test_stable_across_calls_and_processes(self, isolated_config: Path) -> None:
        first = device.get_unique_id()
        assert re.fullmatch(r"[0-9a-f]{32}", first)
        assert device.get_unique_id() == first

        device.reset_cache()
        assert device.get_unique_id() == first

    def test_persisted_under_data_dir(self, isolated_config: Path) -> None:
        value = device.get_unique_id()
        path = isolated_config / "data" / "authbroker" / "device_id"
        assert path.read_text(encoding="utf-8").strip() == value

    def test_existing_file_is_used(self, isolated_config: Path) -> None:
        path = isolated_config / "data" / "authbroker" / "device_id"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("fixed-id\n", encoding="utf-8")
        assert device.get_unique_id() == "fixed-id"
