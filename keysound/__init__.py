"""Keyboard click sounds driven by editable sound packs."""

__version__ = "0.1.0"

from keysound.engine import EngineState, SoundEngine
from keysound.errors import KeySoundError
from keysound.pack import CategoryOverride, KeySound, PackInfo, SoundDefaults, SoundPack
from keysound.repository import discover_all_packs, discover_packs
from keysound.slots import Slot, SlotInfo, SlotKind

__all__ = [
    "__version__",
    "CategoryOverride",
    "EngineState",
    "KeySound",
    "KeySoundError",
    "PackInfo",
    "Slot",
    "SlotInfo",
    "SlotKind",
    "SoundDefaults",
    "SoundEngine",
    "SoundPack",
    "discover_all_packs",
    "discover_packs",
]
