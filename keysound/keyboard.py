"""Global key-down capture through pynput.

Key identifiers are physical-key names independent of the shift state
("KeyA", "Num1", "Space", "Return", "ShiftLeft", ...), the same names pack
manifests use in ``key_overrides`` and category ``keys`` lists.
"""

import logging
import queue
import string

from keysound.errors import KeySoundError

logger = logging.getLogger(__name__)

# pynput picks an OS backend on import and fails without a display server.
try:
    from pynput import keyboard as pynput_kb
except Exception as e:
    logger.info("pynput unavailable, global key capture disabled: %s", e)
    pynput_kb = None

SPECIAL_KEYS = {
    "alt": "Alt", "alt_l": "Alt", "alt_r": "AltGr", "alt_gr": "AltGr",
    "ctrl": "ControlLeft", "ctrl_l": "ControlLeft", "ctrl_r": "ControlRight",
    "shift": "ShiftLeft", "shift_l": "ShiftLeft", "shift_r": "ShiftRight",
    "cmd": "MetaLeft", "cmd_l": "MetaLeft", "cmd_r": "MetaRight",
    "space": "Space", "enter": "Return", "tab": "Tab", "esc": "Escape",
    "backspace": "Backspace", "delete": "Delete", "insert": "Insert",
    "caps_lock": "CapsLock", "num_lock": "NumLock", "scroll_lock": "ScrollLock",
    "print_screen": "PrintScreen", "pause": "Pause",
    "home": "Home", "end": "End", "page_up": "PageUp", "page_down": "PageDown",
    "up": "UpArrow", "down": "DownArrow", "left": "LeftArrow", "right": "RightArrow",
}
SPECIAL_KEYS.update({f"f{n}": f"F{n}" for n in range(1, 25)})

PUNCTUATION = {
    "`": "BackQuote", "-": "Minus", "=": "Equal", "[": "LeftBracket", "]": "RightBracket",
    ";": "SemiColon", "'": "Quote", "\\": "BackSlash", ",": "Comma", ".": "Dot", "/": "Slash",
}
# US layout: shifted symbol -> unshifted key character
SHIFTED = dict(zip('~!@#$%^&*()_+{}:"|<>?', "`1234567890-=[];'\\,./"))


def _char_to_identifier(char):
    char = SHIFTED.get(char, char)
    if char in string.ascii_letters:
        return "Key" + char.upper()
    if char in string.digits:
        return "Num" + char
    return PUNCTUATION.get(char)


def key_to_identifier(key):
    """Map a pynput Key/KeyCode to a key identifier, or None if it has no stable name."""
    name = getattr(key, "name", None)
    if name:
        return SPECIAL_KEYS.get(name)

    char = getattr(key, "char", None)
    if char and char.isprintable():
        identifier = _char_to_identifier(char)
        if identifier:
            return identifier

    # Control characters (Ctrl held) carry no usable char; fall back to the virtual key code.
    vk = getattr(key, "vk", None)
    if vk is not None:
        if 65 <= vk <= 90:     # VK_A to VK_Z
            return "Key" + chr(vk)
        if 48 <= vk <= 57:     # VK_0 to VK_9
            return "Num" + chr(vk)
        if 96 <= vk <= 105:    # VK_NUMPAD0 to VK_NUMPAD9
            return f"Kp{vk - 96}"
    return None


class KeyboardListener:
    """Runs a pynput listener thread; key-down identifiers come out of ``events()``."""

    _STOP = object()

    def __init__(self):
        self._queue = queue.Queue()
        self._listener = None

    def start(self):
        if pynput_kb is None:
            raise KeySoundError("Global keyboard capture is unavailable on this system (pynput failed to load)")
        if self._listener is not None:
            return
        self._listener = pynput_kb.Listener(on_press=self._on_press)
        self._listener.start()
        logger.info("Keyboard listener started")

    def _on_press(self, key):
        # Runs on the pynput thread; an exception here would kill the listener.
        try:
            identifier = key_to_identifier(key)
        except Exception:
            logger.exception("Error translating key %r", key)
            return
        if identifier:
            self._queue.put(identifier)

    def events(self):
        """Yield key identifiers until ``stop()`` is called."""
        while True:
            item = self._queue.get()
            if item is self._STOP:
                return
            yield item

    def stop(self):
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
            logger.info("Keyboard listener stopped")
        self._queue.put(self._STOP)
