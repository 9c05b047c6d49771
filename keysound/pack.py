"""Sound pack manifest model and key resolution.

A pack is a directory holding ``pack.json`` plus a ``sounds/`` folder. Every
sound path stored in the manifest is relative to the pack directory
(``base_path``), which is bound at load time and never read from the
manifest itself.

Resolution for a key walks three tiers, first match wins:

1. ``key_overrides[key]``
2. the first category in ``category_overrides`` (manifest order) listing ``key``
3. ``defaults``

Paths and volumes are resolved independently, so a key may take its sound
from the defaults and its volume from a category.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field

from keysound.config import MANIFEST_FILENAME, USER_SOURCE
from keysound.errors import ManifestMissingError, ManifestParseError, PackIOError

logger = logging.getLogger(__name__)


@dataclass
class SoundDefaults:
    keydown: str
    keyup: str | None = None
    volume: float = 1.0


@dataclass
class KeySound:
    """Per-key override. A field left as None inherits from the category or defaults."""

    keydown: str | None = None
    keyup: str | None = None
    volume: float | None = None


@dataclass
class CategoryOverride:
    """Like KeySound, but applies to every key listed in ``keys``."""

    keys: list = field(default_factory=list)
    keydown: str | None = None
    keyup: str | None = None
    volume: float | None = None


@dataclass
class PackInfo:
    id: str
    name: str
    author: str
    description: str
    source: str | None


@dataclass
class SoundPack:
    id: str
    name: str
    defaults: SoundDefaults
    author: str = ""
    version: str = ""
    description: str = ""
    source: str | None = None
    key_overrides: dict = field(default_factory=dict)
    category_overrides: dict = field(default_factory=dict)
    original_names: dict = field(default_factory=dict)
    base_path: str = ""

    # --- Loading & saving ---
    @classmethod
    def load(cls, directory):
        """Load the pack rooted at ``directory``.

        Raises ManifestMissingError when there is no pack.json and
        ManifestParseError when it is not valid JSON of the expected shape.
        """
        manifest_path = os.path.join(directory, MANIFEST_FILENAME)
        if not os.path.isfile(manifest_path):
            raise ManifestMissingError(directory)
        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as e:  # JSONDecodeError, UnicodeDecodeError
            raise ManifestParseError(manifest_path, e) from e
        except OSError as e:
            raise PackIOError(f"Failed to read {manifest_path}: {e}") from e

        try:
            pack = cls.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise ManifestParseError(manifest_path, e) from e
        pack.base_path = os.path.abspath(directory)

        overlaps = pack.overlapping_keys()
        if overlaps:
            logger.warning("Pack '%s': keys claimed by several categories, first listed wins: %s",
                           pack.id, ", ".join(f"{k} ({', '.join(v)})" for k, v in sorted(overlaps.items())))
        return pack

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise TypeError("manifest must be a JSON object")
        defaults = data["defaults"]
        if not isinstance(defaults, dict):
            raise TypeError("'defaults' must be an object")

        return cls(
            id=_require_str(data, "id"),
            name=_require_str(data, "name"),
            author=_optional_str(data, "author") or "",
            version=_optional_str(data, "version") or "",
            description=_optional_str(data, "description") or "",
            source=_optional_str(data, "source"),
            defaults=SoundDefaults(
                keydown=_require_str(defaults, "keydown"),
                keyup=_optional_str(defaults, "keyup"),
                volume=_optional_volume(defaults, "volume", 1.0),
            ),
            key_overrides={
                key: KeySound(
                    keydown=_optional_str(entry, "keydown"),
                    keyup=_optional_str(entry, "keyup"),
                    volume=_optional_volume(entry, "volume"),
                )
                for key, entry in _object(data, "key_overrides").items()
            },
            category_overrides={
                name: CategoryOverride(
                    keys=_string_list(entry, "keys"),
                    keydown=_optional_str(entry, "keydown"),
                    keyup=_optional_str(entry, "keyup"),
                    volume=_optional_volume(entry, "volume"),
                )
                for name, entry in _object(data, "category_overrides").items()
            },
            original_names=_string_map(data, "original_names"),
        )

    def to_dict(self):
        defaults = {"keydown": self.defaults.keydown}
        if self.defaults.keyup is not None:
            defaults["keyup"] = self.defaults.keyup
        defaults["volume"] = self.defaults.volume

        result = {
            "id": self.id,
            "name": self.name,
            "author": self.author,
            "version": self.version,
            "description": self.description,
        }
        if self.source is not None:
            result["source"] = self.source
        result["defaults"] = defaults
        result["key_overrides"] = {key: _strip_none(asdict(sound)) for key, sound in self.key_overrides.items()}
        result["category_overrides"] = {name: _strip_none(asdict(cat)) for name, cat in self.category_overrides.items()}
        result["original_names"] = dict(self.original_names)
        return result

    def save(self):
        """Write pack.json into base_path. The mutation is durable once this returns."""
        manifest_path = os.path.join(self.base_path, MANIFEST_FILENAME)
        try:
            with open(manifest_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise PackIOError(f"Failed to write {manifest_path}: {e}") from e

    # --- Resolution ---
    def absolute(self, relative_path):
        return os.path.normpath(os.path.join(self.base_path, relative_path))

    def _categories_for(self, key):
        for category in self.category_overrides.values():
            if key in category.keys:
                yield category

    def _resolve(self, key, attr, fallback):
        override = self.key_overrides.get(key)
        if override is not None and getattr(override, attr) is not None:
            return getattr(override, attr)
        for category in self._categories_for(key):
            if getattr(category, attr) is not None:
                return getattr(category, attr)
        return fallback

    def resolve_keydown(self, key):
        """Absolute path of the keydown sound for ``key``. Never None."""
        return self.absolute(self._resolve(key, "keydown", self.defaults.keydown))

    def resolve_keyup(self, key):
        path = self._resolve(key, "keyup", self.defaults.keyup)
        return self.absolute(path) if path is not None else None

    def resolve_volume(self, key):
        volume = self._resolve(key, "volume", self.defaults.volume)
        return min(1.0, max(0.0, float(volume)))

    # --- Introspection ---
    def referenced_paths(self):
        """Sorted, distinct absolute paths of every sound the manifest mentions."""
        relative = [self.defaults.keydown, self.defaults.keyup]
        for entry in list(self.key_overrides.values()) + list(self.category_overrides.values()):
            relative.extend((entry.keydown, entry.keyup))
        return sorted({self.absolute(p) for p in relative if p})

    def overlapping_keys(self):
        """Map of key -> category names, for keys listed by more than one category."""
        owners = {}
        for name, category in self.category_overrides.items():
            for key in category.keys:
                owners.setdefault(key, []).append(name)
        return {key: names for key, names in owners.items() if len(names) > 1}

    @property
    def is_user_pack(self):
        return self.source == USER_SOURCE

    def info(self):
        return PackInfo(id=self.id, name=self.name, author=self.author,
                        description=self.description, source=self.source)


# --- Manifest field helpers ---
def _require_str(data, key):
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string")
    return value


def _optional_str(data, key):
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string")
    return value


def _optional_volume(data, key, default=None):
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"'{key}' must be a number")
    return float(value)


def _object(data, key):
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(isinstance(v, dict) for v in value.values()):
        raise TypeError(f"'{key}' must be an object of objects")
    return value


def _string_list(data, key):
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise TypeError(f"'{key}' must be a list of strings")
    return list(value)


def _string_map(data, key):
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values()):
        raise TypeError(f"'{key}' must map strings to strings")
    return dict(value)


def _strip_none(values):
    return {k: v for k, v in values.items() if v is not None}
