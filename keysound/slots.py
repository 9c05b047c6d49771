"""Slot addressing and the file operations behind custom pack editing.

A slot is a stable name for one editable sound assignment:

    default      -> defaults.keydown
    space        -> key_overrides["Space"]
    enter        -> key_overrides["Return"]
    modifier     -> category_overrides["modifiers"]
    backspace    -> category_overrides["delete"]
    key:<id>     -> key_overrides[<id>]

Every operation that changes a pack writes pack.json before returning.
Import copies the sound before writing the manifest; if that write fails the
copied file is left unreferenced in sounds/ (see ``orphan_sounds``).
"""

import enum
import logging
import os
import re
import shutil
import time
from dataclasses import dataclass

import numpy as np
import soundfile as sf

from keysound.config import (
    ALLOWED_EXTENSIONS,
    MANIFEST_FILENAME,
    MAX_FILE_SIZE,
    NEW_PACK_AUTHOR,
    NEW_PACK_VERSION,
    NEW_PACK_VOLUME,
    SILENCE_FILENAME,
    SILENCE_FRAMES,
    SILENCE_PLACEHOLDER,
    SILENCE_SAMPLE_RATE,
    SOUNDS_DIRNAME,
    UNIQUE_ID_ATTEMPTS,
    USER_SOURCE,
)
from keysound.errors import (
    EmptyNameError,
    FileTooLargeError,
    InvalidSlotError,
    PackIOError,
    PackNotFoundError,
    SourceFileNotFoundError,
    UnsupportedFormatError,
)
from keysound.pack import CategoryOverride, KeySound, SoundDefaults, SoundPack

logger = logging.getLogger(__name__)

KEY_SLOT_PREFIX = "key:"
SPACE_KEY = "Space"
ENTER_KEY = "Return"
MODIFIERS_CATEGORY = "modifiers"
DELETE_CATEGORY = "delete"
MODIFIER_KEYS = ("ShiftLeft", "ShiftRight", "ControlLeft", "ControlRight", "Alt", "AltGr", "MetaLeft", "MetaRight")
DELETE_KEYS = ("Backspace", "Delete")


class SlotKind(enum.Enum):
    DEFAULT = "default"
    SPACE = "space"
    ENTER = "enter"
    MODIFIER = "modifier"
    BACKSPACE = "backspace"
    KEY = "key"


@dataclass(frozen=True)
class Slot:
    kind: SlotKind
    key: str | None = None

    @classmethod
    def parse(cls, value):
        if isinstance(value, Slot):
            return value
        if isinstance(value, str):
            if value.startswith(KEY_SLOT_PREFIX) and len(value) > len(KEY_SLOT_PREFIX):
                return cls(SlotKind.KEY, value[len(KEY_SLOT_PREFIX):])
            if value != SlotKind.KEY.value:
                try:
                    return cls(SlotKind(value))
                except ValueError:
                    pass
        raise InvalidSlotError(value)

    @classmethod
    def for_key(cls, key):
        return cls(SlotKind.KEY, key)

    def __str__(self):
        if self.kind is SlotKind.KEY:
            return KEY_SLOT_PREFIX + self.key
        return self.kind.value


# Fixed slots in display order: (kind, label)
FIXED_SLOTS = (
    (SlotKind.DEFAULT, "Default Key"),
    (SlotKind.SPACE, "Space"),
    (SlotKind.ENTER, "Enter"),
    (SlotKind.MODIFIER, "Modifiers"),
    (SlotKind.BACKSPACE, "Backspace / Delete"),
)

_FIXED_KEYS = {SlotKind.SPACE: SPACE_KEY, SlotKind.ENTER: ENTER_KEY}
_FIXED_CATEGORIES = {SlotKind.MODIFIER: MODIFIERS_CATEGORY, SlotKind.BACKSPACE: DELETE_CATEGORY}


def _new_category(kind):
    if kind is SlotKind.MODIFIER:
        return CategoryOverride(keys=list(MODIFIER_KEYS), volume=0.6)
    return CategoryOverride(keys=list(DELETE_KEYS))


def _override_key(slot):
    """key_overrides key addressed by slot, or None for default/category slots."""
    if slot.kind is SlotKind.KEY:
        return slot.key
    return _FIXED_KEYS.get(slot.kind)


@dataclass
class SlotInfo:
    slot: str
    label: str
    file_name: str | None

    @property
    def display_name(self):
        return self.file_name if self.file_name is not None else "no file"


# --- Slot <-> manifest mapping ---
def get_slot_path(pack, slot):
    """Relative keydown path currently assigned to ``slot``, or None."""
    slot = Slot.parse(slot)
    if slot.kind is SlotKind.DEFAULT:
        return pack.defaults.keydown
    if slot.kind in _FIXED_CATEGORIES:
        category = pack.category_overrides.get(_FIXED_CATEGORIES[slot.kind])
        return category.keydown if category else None
    override = pack.key_overrides.get(_override_key(slot))
    return override.keydown if override else None


def apply_slot(pack, slot, path):
    """Set (``path``) or clear (``None``) the keydown sound behind ``slot``, in memory only.

    Setting creates the target entry when needed; clearing removes it entirely.
    The default slot can only be reassigned, never removed.
    """
    slot = Slot.parse(slot)
    if slot.kind is SlotKind.DEFAULT:
        if path is not None:
            pack.defaults.keydown = path
        return

    if slot.kind in _FIXED_CATEGORIES:
        name = _FIXED_CATEGORIES[slot.kind]
        if path is None:
            pack.category_overrides.pop(name, None)
        else:
            pack.category_overrides.setdefault(name, _new_category(slot.kind)).keydown = path
        return

    key = _override_key(slot)
    if path is None:
        pack.key_overrides.pop(key, None)
    else:
        pack.key_overrides.setdefault(key, KeySound(volume=1.0)).keydown = path


def _file_name(path):
    return os.path.basename(path) if path else None


def list_slots(pack):
    """Fixed slots in fixed order, then per-key overrides (minus Space/Return) sorted by key."""
    result = []
    for kind, label in FIXED_SLOTS:
        slot_id = kind.value
        file_name = pack.original_names.get(slot_id) or _file_name(get_slot_path(pack, Slot(kind)))
        if (kind is SlotKind.DEFAULT and slot_id not in pack.original_names
                and pack.defaults.keydown == SILENCE_PLACEHOLDER):
            file_name = None
        result.append(SlotInfo(slot=slot_id, label=label, file_name=file_name))

    for key in sorted(k for k in pack.key_overrides if k not in (SPACE_KEY, ENTER_KEY)):
        slot_id = str(Slot.for_key(key))
        file_name = pack.original_names.get(slot_id) or _file_name(pack.key_overrides[key].keydown)
        result.append(SlotInfo(slot=slot_id, label=key, file_name=file_name))
    return result


# --- Naming ---
def slugify(name):
    """Lowercase, collapse runs of non-alphanumeric (Unicode-aware) characters into '-', trim the separators."""
    return re.sub(r"[\W_]+", "-", name.lower()).strip("-")


def unique_id(base, directory, reserved_dirs=()):
    """First of base, base-2, base-3, ... that names no entry in ``directory`` or any of ``reserved_dirs``."""
    roots = (directory, *reserved_dirs)

    def taken(candidate):
        return any(os.path.exists(os.path.join(root, candidate)) for root in roots)

    if not taken(base):
        return base
    for i in range(2, UNIQUE_ID_ATTEMPTS):
        candidate = f"{base}-{i}"
        if not taken(candidate):
            return candidate
    return f"{base}-{int(time.time())}"


def _slot_file_name(slot, extension):
    safe_slot = re.sub(r"[^0-9A-Za-z_-]", "-", str(slot))
    return f"keydown-{safe_slot}.{extension}"


# --- Silence placeholder ---
def generate_silence_wav(path):
    """Write ~10ms of mono 16-bit PCM silence, a valid but inaudible WAV."""
    sf.write(path, np.zeros(SILENCE_FRAMES, dtype=np.int16), SILENCE_SAMPLE_RATE,
             format="WAV", subtype="PCM_16")


def _seed_silence(pack_dir, resource_dir):
    """Place the silence placeholder at sounds/keydown.wav, preferring a bundled copy."""
    destination = os.path.join(pack_dir, SOUNDS_DIRNAME, SILENCE_FILENAME)
    bundled = os.path.join(resource_dir, "resources", "silence.wav") if resource_dir else None
    if bundled and os.path.isfile(bundled):
        try:
            shutil.copyfile(bundled, destination)
            return
        except OSError as e:
            logger.warning("Could not copy %s, generating silence instead: %s", bundled, e)
    try:
        generate_silence_wav(destination)
    except (OSError, RuntimeError) as e:  # soundfile reports write failures as RuntimeError
        raise PackIOError(f"Failed to generate silence: {e}") from e


def _remove_quietly(path):
    try:
        os.remove(path)
    except OSError as e:
        logger.debug("Could not remove %s: %s", path, e)


def _load_existing(pack_dir):
    if not os.path.isfile(os.path.join(pack_dir, MANIFEST_FILENAME)):
        raise PackNotFoundError(os.path.basename(os.path.normpath(pack_dir)))
    return SoundPack.load(pack_dir)


# --- Pack operations ---
def import_sound(pack_dir, slot, source_path):
    """Copy ``source_path`` into the pack and assign it to ``slot``. Returns the updated pack."""
    slot = Slot.parse(slot)
    if not os.path.isfile(os.path.join(pack_dir, MANIFEST_FILENAME)):
        raise PackNotFoundError(os.path.basename(os.path.normpath(pack_dir)))
    if not os.path.isfile(source_path):
        raise SourceFileNotFoundError(source_path)

    extension = os.path.splitext(source_path)[1].lstrip(".").lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise UnsupportedFormatError(extension, ALLOWED_EXTENSIONS)
    size = os.path.getsize(source_path)
    if size > MAX_FILE_SIZE:
        raise FileTooLargeError(size, MAX_FILE_SIZE)

    pack = SoundPack.load(pack_dir)

    # Drop the previous file first so a change of extension leaves no orphan.
    old_path = get_slot_path(pack, slot)
    if old_path:
        _remove_quietly(pack.absolute(old_path))

    file_name = _slot_file_name(slot, extension)
    sounds_dir = os.path.join(pack_dir, SOUNDS_DIRNAME)
    try:
        os.makedirs(sounds_dir, exist_ok=True)
        shutil.copyfile(source_path, os.path.join(sounds_dir, file_name))
    except OSError as e:
        raise PackIOError(f"Failed to copy file: {e}") from e

    apply_slot(pack, slot, f"{SOUNDS_DIRNAME}/{file_name}")
    pack.original_names[str(slot)] = os.path.basename(source_path)
    pack.save()
    logger.info("Imported %s into slot '%s' of pack '%s'", os.path.basename(source_path), slot, pack.id)
    return pack


def remove_slot(pack_dir, slot, resource_dir=None):
    """Delete the slot's sound. Default resets to silence; other slots are cleared."""
    slot = Slot.parse(slot)
    pack = _load_existing(pack_dir)

    old_path = get_slot_path(pack, slot)
    if old_path:
        _remove_quietly(pack.absolute(old_path))

    if slot.kind is SlotKind.DEFAULT:
        try:
            os.makedirs(os.path.join(pack_dir, SOUNDS_DIRNAME), exist_ok=True)
        except OSError as e:
            raise PackIOError(f"Failed to create sounds directory: {e}") from e
        _seed_silence(pack_dir, resource_dir)
        pack.defaults.keydown = SILENCE_PLACEHOLDER
    else:
        apply_slot(pack, slot, None)

    pack.original_names.pop(str(slot), None)
    pack.save()
    return pack


def create_pack(user_dir, resource_dir, name, reserved_dirs=()):
    """Create a custom pack under ``user_dir``.

    The id is also kept clear of every directory in ``reserved_dirs`` (the
    bundled pack root), so a bundled pack never shadows the new one.
    """
    name = name.strip()
    if not name:
        raise EmptyNameError()

    pack_id = unique_id(slugify(name) or "pack", user_dir, reserved_dirs)
    pack_dir = os.path.join(user_dir, pack_id)
    try:
        os.makedirs(os.path.join(pack_dir, SOUNDS_DIRNAME))
    except OSError as e:
        raise PackIOError(f"Failed to create pack directory: {e}") from e

    pack = SoundPack(
        id=pack_id,
        name=name,
        author=NEW_PACK_AUTHOR,
        version=NEW_PACK_VERSION,
        source=USER_SOURCE,
        defaults=SoundDefaults(keydown=SILENCE_PLACEHOLDER, volume=NEW_PACK_VOLUME),
        base_path=os.path.abspath(pack_dir),
    )
    # Leave no manifest-less directory behind.
    try:
        _seed_silence(pack_dir, resource_dir)
        pack.save()
    except PackIOError:
        shutil.rmtree(pack_dir, ignore_errors=True)
        raise
    logger.info("Created custom sound pack '%s' at %s", pack.name, pack_dir)
    return pack


def rename_pack(pack_dir, new_name):
    new_name = new_name.strip()
    if not new_name:
        raise EmptyNameError()
    pack = _load_existing(pack_dir)
    pack.name = new_name
    pack.save()
    return pack


def delete_pack(pack_dir):
    """Remove the pack directory and everything in it. Irreversible."""
    if not os.path.isdir(pack_dir):
        raise PackNotFoundError(os.path.basename(os.path.normpath(pack_dir)))
    try:
        shutil.rmtree(pack_dir)
    except OSError as e:
        raise PackIOError(f"Failed to delete sound pack: {e}") from e
    logger.info("Deleted sound pack at %s", pack_dir)


def orphan_sounds(pack):
    """Files in sounds/ that the manifest no longer references."""
    sounds_dir = os.path.join(pack.base_path, SOUNDS_DIRNAME)
    if not os.path.isdir(sounds_dir):
        return []
    referenced = set(pack.referenced_paths())
    return sorted(
        entry.path for entry in os.scandir(sounds_dir)
        if entry.is_file() and os.path.normpath(entry.path) not in referenced
    )
