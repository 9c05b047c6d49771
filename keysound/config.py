import copy
import json
import logging
import os

logger = logging.getLogger(__name__)

# --- Pack layout ---
MANIFEST_FILENAME = "pack.json"
SOUNDS_DIRNAME = "sounds"
SILENCE_FILENAME = "keydown.wav"
SILENCE_PLACEHOLDER = SOUNDS_DIRNAME + "/" + SILENCE_FILENAME
USER_SOURCE = "user"
DEFAULT_PACK_ID = "default"

# --- Import limits ---
ALLOWED_EXTENSIONS = ("mp3", "wav", "ogg")
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MiB
UNIQUE_ID_ATTEMPTS = 1000

# --- New custom packs ---
NEW_PACK_AUTHOR = "User"
NEW_PACK_VERSION = "1.0.0"
NEW_PACK_VOLUME = 0.8

# --- Audio ---
SILENCE_SAMPLE_RATE = 44100
SILENCE_FRAMES = 441     # ~10ms
OUTPUT_SAMPLE_RATE = 44100
OUTPUT_CHANNELS = 2
OUTPUT_BLOCKSIZE = 256   # smaller = lower latency, but risk crackles
MAX_VOICES = 32
MIN_DB = -100.0
DEBOUNCE_NS = 80_000_000  # 80 ms in time.monotonic_ns() units

# --- App data ---
BUNDLED_PACKS_DIRNAME = "soundpacks"
USER_PACKS_DIRNAME = "user-soundpacks"
SETTINGS_FILENAME = "settings.json"
DATA_VERSION_FILENAME = "data-version.json"
DATA_VERSION = 1
DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), ".keysound")

DEFAULT_SETTINGS = {
    "volume": 1.0,
    "enabled": True,
    "active_pack": None,
}

_SETTING_TYPES = {
    "volume": (int, float),
    "enabled": (bool,),
    "active_pack": (str, type(None)),
}


def _write_json(path, data):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)


# --- Settings ---
def load_settings(data_dir):
    """Load settings.json from data_dir, merged over DEFAULT_SETTINGS."""
    settings_path = os.path.join(data_dir, SETTINGS_FILENAME)
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            loaded = json.load(f)
    except FileNotFoundError:
        logger.info("Settings file not found at %s. Using defaults.", settings_path)
        try:
            _write_json(settings_path, settings)
        except OSError as e:
            logger.warning("Could not write default settings to %s: %s", settings_path, e)
        return settings
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read settings from %s: %s. Using defaults.", settings_path, e)
        return settings

    if not isinstance(loaded, dict):
        logger.warning("Settings file %s is not a JSON object. Using defaults.", settings_path)
        return settings

    for key, allowed in _SETTING_TYPES.items():
        if key not in loaded:
            continue
        value = loaded[key]
        # bool is an int subclass; never accept it as a volume
        if not isinstance(value, allowed) or (key == "volume" and isinstance(value, bool)):
            logger.warning("Ignoring setting %r with unexpected value %r", key, value)
            continue
        settings[key] = value
    settings["volume"] = min(1.0, max(0.0, float(settings["volume"])))
    return settings


def save_settings(data_dir, settings):
    settings_path = os.path.join(data_dir, SETTINGS_FILENAME)
    to_save = {key: settings.get(key, default) for key, default in DEFAULT_SETTINGS.items()}
    _write_json(settings_path, to_save)
    logger.debug("Settings saved to %s", settings_path)


# --- Data version ---
def ensure_data_version(data_dir):
    """Stamp data_dir with DATA_VERSION. Returns the version found before stamping, or None."""
    version_path = os.path.join(data_dir, DATA_VERSION_FILENAME)
    if not os.path.exists(version_path):
        _write_json(version_path, {"version": DATA_VERSION})
        return None

    try:
        with open(version_path, "r", encoding="utf-8") as f:
            current = json.load(f).get("version")
    except (OSError, json.JSONDecodeError, AttributeError) as e:
        logger.warning("Unreadable data version file %s: %s", version_path, e)
        return None

    if isinstance(current, int) and current < DATA_VERSION:
        # Migrations from older data versions hook in here.
        _write_json(version_path, {"version": DATA_VERSION})
    return current
