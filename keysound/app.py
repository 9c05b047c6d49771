import logging
import os
import threading

from keysound import config, repository, slots
from keysound.audio import MixerBackend
from keysound.engine import SoundEngine
from keysound.errors import BundledPackError, KeySoundError, PackNotFoundError
from keysound.keyboard import KeyboardListener
from keysound.pack import SoundPack

logger = logging.getLogger(__name__)


class KeySoundApp:
    """Wires settings, pack storage, the engine and the keyboard listener together.

    Each public method corresponds to one command a UI or RPC layer issues.
    Slot edits touch the filesystem without the engine lock; if the edited
    pack is the active one it is reloaded afterwards.
    """

    def __init__(self, data_dir=config.DEFAULT_DATA_DIR, resource_dir=None, backend=None):
        self.data_dir = data_dir
        self.resource_dir = resource_dir
        self.bundled_dir = os.path.join(data_dir, config.BUNDLED_PACKS_DIRNAME)
        self.user_dir = os.path.join(data_dir, config.USER_PACKS_DIRNAME)
        os.makedirs(self.bundled_dir, exist_ok=True)
        os.makedirs(self.user_dir, exist_ok=True)

        config.ensure_data_version(data_dir)
        if resource_dir:
            repository.install_bundled_packs(resource_dir, self.bundled_dir)

        self.settings = config.load_settings(data_dir)
        # Audio output is required; MixerBackend raises AudioBackendError if it cannot start.
        self.engine = SoundEngine(backend if backend is not None else MixerBackend())
        self.engine.set_volume(self.settings["volume"])
        self.engine.set_enabled(self.settings["enabled"])

        self._listener = None
        self._dispatch_thread = None
        self._load_initial_pack()

    def _load_initial_pack(self):
        saved = self.settings.get("active_pack")
        if saved:
            try:
                self.engine.load_pack_from_path(self._pack_dir(saved))
                return
            except KeySoundError as e:
                logger.warning("Could not restore sound pack '%s': %s", saved, e)

        packs = repository.discover_packs(self.bundled_dir)
        if not packs:
            logger.warning("No sound packs found in %s", self.bundled_dir)
            return
        logger.info("Loading default sound pack: %s", packs[0].name)
        self.engine.load_pack(packs[0])

    def _pack_dir(self, pack_id):
        return repository.find_pack_dir(pack_id, self.bundled_dir, self.user_dir)

    def _user_pack_dir(self, pack_id):
        """Directory of an editable pack. Bundled ids are refused."""
        if os.path.isdir(os.path.join(self.bundled_dir, pack_id)):
            raise BundledPackError(pack_id)
        pack_dir = os.path.join(self.user_dir, pack_id)
        if not os.path.isfile(os.path.join(pack_dir, config.MANIFEST_FILENAME)):
            raise PackNotFoundError(pack_id)
        return pack_dir

    def _reload_if_active(self, pack):
        if self.engine.active_pack_id() == pack.id:
            self.engine.load_pack(pack)

    def _save_settings(self):
        try:
            config.save_settings(self.data_dir, self.settings)
        except OSError as e:
            logger.error("Could not save settings: %s", e)

    # --- Packs ---
    def get_sound_packs(self):
        return [p.info() for p in repository.discover_all_packs(self.bundled_dir, self.user_dir)]

    def set_active_pack(self, pack_id):
        self.engine.load_pack(SoundPack.load(self._pack_dir(pack_id)))
        self.settings["active_pack"] = pack_id
        self._save_settings()

    def get_active_pack_id(self):
        return self.engine.active_pack_id()

    # --- Volume / enabled ---
    def set_volume(self, volume):
        self.engine.set_volume(volume)
        self.settings["volume"] = self.engine.get_volume()
        self._save_settings()

    def get_volume(self):
        return self.engine.get_volume()

    def toggle_sound(self):
        enabled = self.engine.toggle()
        logger.info("Sound %s", "enabled" if enabled else "disabled")
        self.settings["enabled"] = enabled
        self._save_settings()
        return enabled

    def get_enabled(self):
        return self.engine.is_enabled()

    def play_sound(self, key):
        return self.engine.play_key(key)

    # --- Custom packs ---
    def create_custom_pack(self, name):
        return slots.create_pack(self.user_dir, self.resource_dir, name, reserved_dirs=(self.bundled_dir,)).info()

    def import_sound_file(self, pack_id, slot, file_path):
        pack = slots.import_sound(self._user_pack_dir(pack_id), slot, file_path)
        self._reload_if_active(pack)

    def remove_sound_slot(self, pack_id, slot):
        pack = slots.remove_slot(self._user_pack_dir(pack_id), slot, self.resource_dir)
        self._reload_if_active(pack)

    def rename_custom_pack(self, pack_id, new_name):
        pack = slots.rename_pack(self._user_pack_dir(pack_id), new_name)
        self._reload_if_active(pack)

    def get_custom_pack_slots(self, pack_id):
        return slots.list_slots(SoundPack.load(self._user_pack_dir(pack_id)))

    def delete_custom_pack(self, pack_id):
        slots.delete_pack(self._user_pack_dir(pack_id))
        if self.engine.active_pack_id() != pack_id:
            return
        # The active pack is gone; fall back to the default pack.
        self.settings["active_pack"] = None
        self._save_settings()
        try:
            self.engine.load_pack_from_path(os.path.join(self.bundled_dir, config.DEFAULT_PACK_ID))
        except KeySoundError as e:
            logger.warning("Could not fall back to the default pack: %s", e)

    # --- Keyboard ---
    def start_keyboard(self, listener=None):
        """Start capturing keys and feed each key-down into the engine on a dispatcher thread."""
        if self._listener is not None:
            return
        self._listener = listener if listener is not None else KeyboardListener()
        self._listener.start()
        self._dispatch_thread = threading.Thread(target=self._dispatch, args=(self._listener,),
                                                 daemon=True, name="key-dispatch")
        self._dispatch_thread.start()

    def _dispatch(self, listener):
        for key in listener.events():
            self.engine.play_key(key)

    def stop(self):
        if self._listener is not None:
            self._listener.stop()
            self._dispatch_thread.join(timeout=1.0)
            self._listener = None
            self._dispatch_thread = None
        self.engine.close()
        self._save_settings()
