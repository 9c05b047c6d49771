"""Playback engine: one active pack, its preloaded sounds, master volume and debounce.

Every piece of mutable state lives behind ``self._lock``. ``load_pack`` decodes
outside that lock (serialised by its own ``_load_lock``) and then swaps the
cache, pack and debounce table in one step, so a key played during a load is
served entirely by the previous pack.
"""

import copy
import enum
import logging
import os
import threading
import time

from keysound.audio import amplitude_to_db, decode_sound
from keysound.config import DEBOUNCE_NS
from keysound.errors import KeySoundError
from keysound.pack import SoundPack

logger = logging.getLogger(__name__)


class EngineState(enum.Enum):
    EMPTY = "empty"
    LOADING = "loading"
    ACTIVE = "active"


class SoundEngine:
    def __init__(self, backend, clock=time.monotonic_ns, debounce=DEBOUNCE_NS, decoder=decode_sound):
        self._backend = backend
        self._clock = clock
        self._debounce = debounce
        self._decoder = decoder
        self._lock = threading.Lock()
        self._load_lock = threading.Lock()
        self._sounds = {}       # absolute path -> DecodedSound
        self._active_pack = None
        self._last_played = {}  # key identifier -> clock() (ns) of last accepted play
        self._volume = 1.0
        self._enabled = True
        self._loading = False

    # --- Pack loading ---
    def _preload(self, paths):
        results = [None] * len(paths)

        def worker(index, path):
            try:
                results[index] = self._decoder(path)
            except Exception as e:
                logger.warning("Failed to load sound %s: %s", path, e)

        threads = [threading.Thread(target=worker, args=(i, p), daemon=True, name=f"preload-{i}")
                   for i, p in enumerate(paths)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return {path: sound for path, sound in zip(paths, results) if sound is not None}

    def load_pack(self, pack):
        """Preload every sound ``pack`` references, then make it the active pack."""
        snapshot = copy.deepcopy(pack)  # the engine never sees later edits to the caller's pack
        with self._load_lock:
            with self._lock:
                self._loading = True
            try:
                paths = []
                for path in snapshot.referenced_paths():
                    if os.path.isfile(path):
                        paths.append(path)
                    else:
                        logger.warning("Sound file not found: %s", path)
                sounds = self._preload(paths)
                with self._lock:
                    self._sounds = sounds
                    self._active_pack = snapshot
                    self._last_played = {}
            finally:
                with self._lock:
                    self._loading = False
        logger.info("Loaded sound pack '%s' with %d sounds", snapshot.name, len(sounds))

    def load_pack_from_path(self, directory):
        self.load_pack(SoundPack.load(directory))

    # --- Playback ---
    def play_key(self, key):
        """Play the keydown sound for ``key``. Returns True if a sound was submitted."""
        with self._lock:
            if not self._enabled or self._active_pack is None:
                return False

            now = self._clock()
            last = self._last_played.get(key)
            if last is not None and now - last < self._debounce:
                return False

            pack = self._active_pack
            sound = self._sounds.get(pack.resolve_keydown(key))
            if sound is None:
                return False

            gain_db = amplitude_to_db(self._volume * pack.resolve_volume(key))
            try:
                self._backend.play(sound, gain_db)
            except KeySoundError as e:
                logger.error("Failed to play sound: %s", e)
            self._last_played[key] = now
            return True

    # --- Accessors ---
    def set_volume(self, volume):
        with self._lock:
            self._volume = min(1.0, max(0.0, float(volume)))

    def get_volume(self):
        with self._lock:
            return self._volume

    def set_enabled(self, enabled):
        with self._lock:
            self._enabled = bool(enabled)

    def is_enabled(self):
        with self._lock:
            return self._enabled

    def toggle(self):
        with self._lock:
            self._enabled = not self._enabled
            return self._enabled

    def active_pack_id(self):
        with self._lock:
            return self._active_pack.id if self._active_pack else None

    @property
    def state(self):
        with self._lock:
            if self._loading:
                return EngineState.LOADING
            return EngineState.ACTIVE if self._active_pack is not None else EngineState.EMPTY

    @property
    def sound_count(self):
        with self._lock:
            return len(self._sounds)

    def close(self):
        with self._lock:
            self._sounds = {}
            self._active_pack = None
        close = getattr(self._backend, "close", None)
        if close:
            close()
