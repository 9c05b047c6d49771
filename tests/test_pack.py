"""Tests for the pack manifest model and key resolution."""

import json
import logging
import os

import pytest

from keysound.errors import ManifestMissingError, ManifestParseError
from keysound.pack import CategoryOverride, KeySound, SoundDefaults, SoundPack


@pytest.fixture
def layered_pack(pack_factory):
    pack_dir = pack_factory(
        "layered",
        defaults={"keydown": "sounds/keydown.wav", "volume": 0.9},
        key_overrides={
            "Space": {"keydown": "sounds/space.wav", "volume": 0.5},
            "ShiftLeft": {"volume": 0.2},
            "KeyA": {"keyup": "sounds/a-up.wav"},
        },
        category_overrides={
            "modifiers": {"keys": ["ShiftLeft", "ControlLeft"], "keydown": "sounds/mod.wav", "volume": 0.6},
            "delete": {"keys": ["Backspace"], "keyup": "sounds/bs-up.wav"},
        },
    )
    return SoundPack.load(pack_dir)


class TestLoad:
    def test_minimal_manifest_defaults(self, pack_factory):
        pack = SoundPack.load(pack_factory("minimal"))

        assert pack.id == "minimal"
        assert pack.author == ""
        assert pack.source is None
        assert pack.defaults.volume == 1.0
        assert pack.defaults.keyup is None
        assert pack.key_overrides == {}
        assert pack.category_overrides == {}
        assert pack.original_names == {}

    def test_base_path_is_bound_to_directory(self, pack_factory):
        pack_dir = pack_factory("bound", base_path="/somewhere/else")
        pack = SoundPack.load(pack_dir)
        assert pack.base_path == os.path.abspath(pack_dir)

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(ManifestMissingError):
            SoundPack.load(str(tmp_path / "nothing-here"))

    def test_invalid_json(self, tmp_path):
        (tmp_path / "pack.json").write_text("{not json")
        with pytest.raises(ManifestParseError):
            SoundPack.load(str(tmp_path))

    @pytest.mark.parametrize("manifest", [
        {"id": "x", "name": "x"},
        {"id": "x", "name": "x", "defaults": {}},
        {"id": "x", "name": "x", "defaults": {"keydown": 3}},
        {"id": "x", "name": "x", "defaults": {"keydown": "a.wav", "volume": "loud"}},
        {"id": "x", "name": "x", "defaults": {"keydown": "a.wav"}, "category_overrides": {"c": {"keys": "KeyA"}}},
        ["not", "an", "object"],
    ])
    def test_wrong_shape(self, tmp_path, manifest):
        (tmp_path / "pack.json").write_text(json.dumps(manifest))
        with pytest.raises(ManifestParseError):
            SoundPack.load(str(tmp_path))

    def test_null_optional_fields_accepted(self, pack_factory):
        pack = SoundPack.load(pack_factory(
            "nulls", source=None,
            key_overrides={"KeyA": {"keydown": None, "keyup": None, "volume": None}},
        ))
        assert pack.key_overrides["KeyA"] == KeySound()


class TestResolveKeydown:
    def test_key_override_wins(self, layered_pack):
        assert layered_pack.resolve_keydown("Space").endswith(os.path.join("sounds", "space.wav"))

    def test_category_when_no_key_path(self, layered_pack):
        # ShiftLeft has a key override, but it only sets volume
        assert layered_pack.resolve_keydown("ShiftLeft").endswith("mod.wav")
        assert layered_pack.resolve_keydown("ControlLeft").endswith("mod.wav")

    def test_default_fallback(self, layered_pack):
        assert layered_pack.resolve_keydown("KeyZ").endswith("keydown.wav")
        # category without keydown falls through too
        assert layered_pack.resolve_keydown("Backspace").endswith("keydown.wav")

    @pytest.mark.parametrize("key", ["KeyA", "Space", "Backspace", "", "Unknown(999)"])
    def test_always_returns_path_under_base(self, layered_pack, key):
        path = layered_pack.resolve_keydown(key)
        assert path.startswith(layered_pack.base_path)
        assert os.path.basename(path)


class TestResolveVolume:
    def test_precedence(self, layered_pack):
        assert layered_pack.resolve_volume("Space") == 0.5
        assert layered_pack.resolve_volume("ShiftLeft") == 0.2
        assert layered_pack.resolve_volume("ControlLeft") == 0.6
        assert layered_pack.resolve_volume("KeyZ") == 0.9

    def test_path_and_volume_resolve_independently(self, layered_pack):
        # KeyA: path from defaults, volume from defaults; keyup from its own override
        assert layered_pack.resolve_keydown("KeyA").endswith("keydown.wav")
        assert layered_pack.resolve_keyup("KeyA").endswith("a-up.wav")

    def test_out_of_range_volume_is_clamped(self, pack_factory):
        pack = SoundPack.load(pack_factory("loud", key_overrides={"KeyA": {"volume": 1.7}}))
        assert pack.resolve_volume("KeyA") == 1.0


def test_resolve_keyup(layered_pack):
    assert layered_pack.resolve_keyup("Backspace").endswith("bs-up.wav")
    assert layered_pack.resolve_keyup("KeyZ") is None


def test_first_listed_category_wins_and_overlap_is_logged(pack_factory, caplog):
    pack_dir = pack_factory("overlap", category_overrides={
        "first": {"keys": ["KeyQ"], "keydown": "sounds/first.wav"},
        "second": {"keys": ["KeyQ", "KeyW"], "keydown": "sounds/second.wav", "volume": 0.3},
    })
    with caplog.at_level(logging.WARNING, logger="keysound.pack"):
        pack = SoundPack.load(pack_dir)

    assert pack.overlapping_keys() == {"KeyQ": ["first", "second"]}
    assert pack.resolve_keydown("KeyQ").endswith("first.wav")
    # first category sets no volume, so the second one supplies it
    assert pack.resolve_volume("KeyQ") == 0.3
    assert "KeyQ" in caplog.text


def test_referenced_paths_are_distinct_and_absolute(layered_pack):
    paths = layered_pack.referenced_paths()
    names = sorted(os.path.basename(p) for p in paths)

    assert names == ["a-up.wav", "bs-up.wav", "keydown.wav", "mod.wav", "space.wav"]
    assert all(os.path.isabs(p) for p in paths)


def test_save_then_load_keeps_everything(tmp_path):
    pack = SoundPack(
        id="saved", name="Saved", author="Me", version="2.0", description="d", source="user",
        defaults=SoundDefaults(keydown="sounds/k.wav", keyup="sounds/u.wav", volume=0.7),
        key_overrides={"Return": KeySound(keydown="sounds/r.wav", volume=1.0)},
        category_overrides={"delete": CategoryOverride(keys=["Backspace", "Delete"], keydown="sounds/d.wav")},
        original_names={"enter": "ding.wav"},
        base_path=str(tmp_path),
    )
    pack.save()

    written = json.loads((tmp_path / "pack.json").read_text())
    assert "base_path" not in written
    assert written["key_overrides"]["Return"] == {"keydown": "sounds/r.wav", "volume": 1.0}

    loaded = SoundPack.load(str(tmp_path))
    assert loaded == pack


def test_info_and_user_flag(pack_factory):
    pack = SoundPack.load(pack_factory("mine", source="user", author="A", description="D"))
    info = pack.info()

    assert (info.id, info.author, info.description, info.source) == ("mine", "A", "D", "user")
    assert pack.is_user_pack
    assert not SoundPack.load(pack_factory("bundled")).is_user_pack
