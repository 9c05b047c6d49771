"""Tests for settings persistence and the data version stamp."""

import json

import pytest

from keysound import config
from keysound.config import DEFAULT_SETTINGS, ensure_data_version, load_settings, save_settings


class TestSettings:
    def test_missing_file_writes_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path))

        assert settings == DEFAULT_SETTINGS
        assert json.loads((tmp_path / "settings.json").read_text()) == DEFAULT_SETTINGS

    def test_save_then_load(self, tmp_path):
        save_settings(str(tmp_path), {"volume": 0.4, "enabled": False, "active_pack": "piano"})
        assert load_settings(str(tmp_path)) == {"volume": 0.4, "enabled": False, "active_pack": "piano"}

    def test_partial_file_is_merged(self, tmp_path):
        (tmp_path / "settings.json").write_text(json.dumps({"enabled": False, "unknown": 1}))
        settings = load_settings(str(tmp_path))
        assert settings == {"volume": 1.0, "enabled": False, "active_pack": None}

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]", '"text"'])
    def test_unreadable_file_gives_defaults(self, tmp_path, content):
        (tmp_path / "settings.json").write_text(content)
        assert load_settings(str(tmp_path)) == DEFAULT_SETTINGS

    def test_wrong_types_ignored(self, tmp_path):
        (tmp_path / "settings.json").write_text(json.dumps({"volume": True, "enabled": "yes", "active_pack": 3}))
        assert load_settings(str(tmp_path)) == DEFAULT_SETTINGS

    def test_volume_clamped(self, tmp_path):
        (tmp_path / "settings.json").write_text(json.dumps({"volume": 4}))
        assert load_settings(str(tmp_path))["volume"] == 1.0

    def test_defaults_not_mutated(self, tmp_path):
        settings = load_settings(str(tmp_path))
        settings["volume"] = 0.1
        assert DEFAULT_SETTINGS["volume"] == 1.0


class TestDataVersion:
    def test_first_run_creates_file(self, tmp_path):
        assert ensure_data_version(str(tmp_path)) is None
        assert json.loads((tmp_path / "data-version.json").read_text()) == {"version": config.DATA_VERSION}

    def test_idempotent(self, tmp_path):
        ensure_data_version(str(tmp_path))
        assert ensure_data_version(str(tmp_path)) == config.DATA_VERSION
        assert ensure_data_version(str(tmp_path)) == config.DATA_VERSION

    def test_older_version_is_upgraded(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "DATA_VERSION", 3)
        (tmp_path / "data-version.json").write_text(json.dumps({"version": 1}))

        assert ensure_data_version(str(tmp_path)) == 1
        assert json.loads((tmp_path / "data-version.json").read_text()) == {"version": 3}

    def test_newer_version_left_alone(self, tmp_path):
        (tmp_path / "data-version.json").write_text(json.dumps({"version": 99}))
        assert ensure_data_version(str(tmp_path)) == 99
        assert json.loads((tmp_path / "data-version.json").read_text()) == {"version": 99}

    def test_unreadable(self, tmp_path):
        (tmp_path / "data-version.json").write_text("not json")
        assert ensure_data_version(str(tmp_path)) is None
