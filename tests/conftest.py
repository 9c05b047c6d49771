"""Shared fixtures: pack directories on disk, a recording audio backend, a manual clock."""

import json
import os

import numpy as np
import pytest
import soundfile as sf

from keysound.slots import generate_silence_wav


class RecordingBackend:
    """Stands in for MixerBackend; remembers every submitted one-shot."""

    def __init__(self):
        self.played = []  # (DecodedSound, gain_db)
        self.closed = False

    def play(self, sound, gain_db):
        self.played.append((sound, gain_db))

    def close(self):
        self.closed = True


class ManualClock:
    """Nanosecond clock in the shape of time.monotonic_ns; set and advanced in seconds."""

    def __init__(self, seconds=0.0):
        self.now = round(seconds * 1_000_000_000)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += round(seconds * 1_000_000_000)


def write_tone(path, sample_rate=44100, channels=1, seconds=0.05):
    t = np.linspace(0, seconds, int(sample_rate * seconds), endpoint=False)
    wave = (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32)
    data = np.column_stack([wave] * channels) if channels > 1 else wave
    sf.write(path, data, sample_rate, subtype="PCM_16")
    return path


def write_pack(root, pack_id, source=None, **manifest):
    """Create <root>/<pack_id>/ with pack.json and a real silent sounds/keydown.wav."""
    pack_dir = os.path.join(root, pack_id)
    os.makedirs(os.path.join(pack_dir, "sounds"), exist_ok=True)
    generate_silence_wav(os.path.join(pack_dir, "sounds", "keydown.wav"))
    data = {"id": pack_id, "name": pack_id, "defaults": {"keydown": "sounds/keydown.wav"}}
    if source is not None:
        data["source"] = source
    data.update(manifest)
    with open(os.path.join(pack_dir, "pack.json"), "w", encoding="utf-8") as f:
        json.dump(data, f)
    return pack_dir


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def pack_factory(tmp_path):
    def factory(pack_id="test", root=None, source=None, **manifest):
        return write_pack(str(root or tmp_path), pack_id, source=source, **manifest)
    return factory


@pytest.fixture
def resource_dir(tmp_path):
    """A resource root shipping a bundled 'default' and 'piano' pack."""
    root = tmp_path / "resources-root"
    packs = root / "resources" / "soundpacks"
    packs.mkdir(parents=True)
    write_pack(str(packs), "default", name="Default")
    write_pack(str(packs), "piano", name="Piano")
    return str(root)
