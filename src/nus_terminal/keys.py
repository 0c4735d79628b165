"""Key event model and key-to-byte encoding for the NUS terminal.

The encoding follows what a VT100-style serial terminal sends, so line-editing
shells on the firmware side (Zephyr shell, NuttX nsh, ...) behave as they do on
a wired UART:

* Backspace -> 0x08, Enter -> CR, Tab -> HT
* Ctrl+<char> -> ``ord(char) & 0x1F``
* Arrow keys -> ``ESC [ A/B/C/D``
* Escape is never transmitted; it ends the session.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


CTRL_L = b"\x0c"  # sent on session start to make the remote shell redraw its prompt


class KeyCode(enum.Enum):
    CHAR = "char"
    ESC = "esc"
    BACKSPACE = "backspace"
    ENTER = "enter"
    TAB = "tab"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
    OTHER = "other"


class KeyModifiers(enum.IntFlag):
    NONE = 0
    SHIFT = 1
    CONTROL = 2
    ALT = 4


@dataclass(frozen=True)
class KeyEvent:
    """A decoded key press. ``char`` is only set for ``KeyCode.CHAR``."""

    code: KeyCode
    char: Optional[str] = None
    modifiers: KeyModifiers = KeyModifiers.NONE


_FIXED_SEQUENCES = {
    KeyCode.BACKSPACE: b"\x08",
    KeyCode.ENTER: b"\r",
    KeyCode.TAB: b"\t",
    KeyCode.LEFT: b"\x1b[D",
    KeyCode.RIGHT: b"\x1b[C",
    KeyCode.UP: b"\x1b[A",
    KeyCode.DOWN: b"\x1b[B",
}


def is_exit_key(event: KeyEvent) -> bool:
    return event.code is KeyCode.ESC


def encode_key(event: KeyEvent) -> Optional[bytes]:
    """Return the bytes to transmit for ``event``, or None to ignore it."""
    if event.code is KeyCode.CHAR:
        return _encode_char(event.char, event.modifiers)
    return _FIXED_SEQUENCES.get(event.code)


def _encode_char(char: Optional[str], modifiers: KeyModifiers) -> Optional[bytes]:
    if not char:
        return None
    code = ord(char)
    if code < 0x80:
        if modifiers & KeyModifiers.CONTROL:
            return bytes([code & 0x1F])
        return bytes([code])
    # No control-character equivalent outside ASCII
    if modifiers & KeyModifiers.CONTROL:
        return None
    return char.encode("utf-8")
