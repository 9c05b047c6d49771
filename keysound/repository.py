import logging
import os
import shutil

from keysound.config import DEFAULT_PACK_ID, MANIFEST_FILENAME
from keysound.errors import KeySoundError, PackNotFoundError
from keysound.pack import SoundPack

logger = logging.getLogger(__name__)


def _pack_sort_key(pack):
    # "default" always sorts first, then alphabetical by id
    return (pack.id != DEFAULT_PACK_ID, pack.id)


def discover_packs(directory):
    """Load every pack directly under ``directory``. Unloadable packs are skipped with a warning."""
    packs = []
    if not os.path.isdir(directory):
        return packs

    for entry in os.scandir(directory):
        if not entry.is_dir():
            continue
        try:
            packs.append(SoundPack.load(entry.path))
        except KeySoundError as e:
            logger.warning("Failed to load sound pack from %s: %s", entry.path, e)

    packs.sort(key=_pack_sort_key)
    return packs


def discover_all_packs(bundled_dir, user_dir):
    """Default pack first, then user packs (alphabetical), then remaining bundled packs (alphabetical)."""
    bundled = discover_packs(bundled_dir)
    user = discover_packs(user_dir)
    return ([p for p in bundled if p.id == DEFAULT_PACK_ID]
            + user
            + [p for p in bundled if p.id != DEFAULT_PACK_ID])


def find_pack_dir(pack_id, bundled_dir, user_dir):
    """Bundled packs shadow user packs with the same id."""
    for root in (bundled_dir, user_dir):
        candidate = os.path.join(root, pack_id)
        if os.path.isfile(os.path.join(candidate, MANIFEST_FILENAME)):
            return candidate
    raise PackNotFoundError(pack_id)


def copy_dir_recursive(src, dst):
    """Copy the tree at ``src`` into ``dst``, overwriting files that already exist.

    Best-effort: a file or directory that cannot be copied is logged and
    skipped. Returns the list of source paths that failed.
    """
    failures = []
    try:
        os.makedirs(dst, exist_ok=True)
        entries = list(os.scandir(src))
    except OSError as e:
        logger.warning("Could not copy directory %s -> %s: %s", src, dst, e)
        return [src]

    for entry in entries:
        target = os.path.join(dst, entry.name)
        if entry.is_dir():
            failures.extend(copy_dir_recursive(entry.path, target))
            continue
        try:
            shutil.copyfile(entry.path, target)
        except OSError as e:
            logger.warning("Could not copy %s -> %s: %s", entry.path, target, e)
            failures.append(entry.path)
    return failures


def install_bundled_packs(resource_dir, bundled_dir):
    """Sync packs shipped under ``<resource_dir>/resources/soundpacks`` into the app-data bundled root."""
    source = os.path.join(resource_dir, "resources", "soundpacks")
    if not os.path.isdir(source):
        logger.debug("No bundled sound packs at %s", source)
        return []
    failures = copy_dir_recursive(source, bundled_dir)
    if failures:
        logger.warning("%d bundled file(s) could not be installed into %s", len(failures), bundled_dir)
    return failures
