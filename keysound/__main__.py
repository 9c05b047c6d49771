"""
KeySound - keyboard click sounds from editable sound packs.

Usage:
    python -m keysound run [--pack ID] [--volume 0.8]
        Play the active pack's sounds for every key pressed, until Ctrl+C.

    python -m keysound list
    python -m keysound create "My Pack"
    python -m keysound rename my-pack "New Name"
    python -m keysound slots my-pack
    python -m keysound import my-pack space ~/clicks/space.wav
    python -m keysound remove my-pack key:KeyA
    python -m keysound delete my-pack
"""

import argparse
import logging
import os
import sys
import time

from keysound import __version__, config, repository, slots
from keysound.errors import AudioBackendError, KeySoundError

logger = logging.getLogger(__name__)


def _user_pack_dir(args, pack_id):
    return os.path.join(args.data_dir, config.USER_PACKS_DIRNAME, pack_id)


def cmd_run(args):
    from keysound.app import KeySoundApp

    try:
        app = KeySoundApp(args.data_dir, args.resource_dir)
    except AudioBackendError as e:
        print(f"FATAL: {e}", file=sys.stderr)
        return 1

    if args.pack:
        app.set_active_pack(args.pack)
    if args.volume is not None:
        app.set_volume(args.volume)
    app.start_keyboard()
    print(f"Playing '{app.get_active_pack_id()}' at volume {app.get_volume():.2f}. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        app.stop()
    return 0


def cmd_list(args):
    bundled = os.path.join(args.data_dir, config.BUNDLED_PACKS_DIRNAME)
    user = os.path.join(args.data_dir, config.USER_PACKS_DIRNAME)
    packs = repository.discover_all_packs(bundled, user)
    if not packs:
        print("No sound packs installed.")
    for pack in packs:
        tag = " [custom]" if pack.is_user_pack else ""
        print(f"{pack.id:<24} {pack.name}{tag}")
    return 0


def cmd_create(args):
    user = os.path.join(args.data_dir, config.USER_PACKS_DIRNAME)
    os.makedirs(user, exist_ok=True)
    bundled = os.path.join(args.data_dir, config.BUNDLED_PACKS_DIRNAME)
    pack = slots.create_pack(user, args.resource_dir, args.name, reserved_dirs=(bundled,))
    print(f"Created '{pack.name}' ({pack.id})")
    return 0


def cmd_rename(args):
    pack = slots.rename_pack(_user_pack_dir(args, args.pack_id), args.name)
    print(f"Renamed {pack.id} to '{pack.name}'")
    return 0


def cmd_slots(args):
    from keysound.pack import SoundPack

    pack = SoundPack.load(_user_pack_dir(args, args.pack_id))
    for info in slots.list_slots(pack):
        print(f"{info.slot:<20} {info.label:<20} {info.display_name}")
    return 0


def cmd_import(args):
    slots.import_sound(_user_pack_dir(args, args.pack_id), args.slot, args.file)
    print(f"Imported {os.path.basename(args.file)} into {args.slot}")
    return 0


def cmd_remove(args):
    slots.remove_slot(_user_pack_dir(args, args.pack_id), args.slot, args.resource_dir)
    print(f"Cleared {args.slot}")
    return 0


def cmd_delete(args):
    slots.delete_pack(_user_pack_dir(args, args.pack_id))
    print(f"Deleted {args.pack_id}")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="keysound", description="Keyboard sound packs")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--data-dir", default=config.DEFAULT_DATA_DIR, help="App data directory (default: %(default)s)")
    parser.add_argument("--resource-dir", default=None, help="Directory holding resources/soundpacks and resources/silence.wav")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Play key sounds until interrupted")
    run.add_argument("--pack", help="Pack id to activate")
    run.add_argument("--volume", type=float, help="Master volume, 0.0-1.0")
    run.set_defaults(func=cmd_run)

    sub.add_parser("list", help="List installed packs").set_defaults(func=cmd_list)

    create = sub.add_parser("create", help="Create a custom pack")
    create.add_argument("name")
    create.set_defaults(func=cmd_create)

    rename = sub.add_parser("rename", help="Rename a custom pack")
    rename.add_argument("pack_id")
    rename.add_argument("name")
    rename.set_defaults(func=cmd_rename)

    show = sub.add_parser("slots", help="Show a custom pack's sound slots")
    show.add_argument("pack_id")
    show.set_defaults(func=cmd_slots)

    imp = sub.add_parser("import", help="Import a sound into a slot")
    imp.add_argument("pack_id")
    imp.add_argument("slot", help="default | space | enter | modifier | backspace | key:<id>")
    imp.add_argument("file")
    imp.set_defaults(func=cmd_import)

    remove = sub.add_parser("remove", help="Remove the sound from a slot")
    remove.add_argument("pack_id")
    remove.add_argument("slot")
    remove.set_defaults(func=cmd_remove)

    delete = sub.add_parser("delete", help="Delete a custom pack")
    delete.add_argument("pack_id")
    delete.set_defaults(func=cmd_delete)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return args.func(args)
    except KeySoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
