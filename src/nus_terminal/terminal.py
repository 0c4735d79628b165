"""Raw-mode terminal access (POSIX) and decoding of raw input into key events."""
from __future__ import annotations

import os
import select
import sys
import termios
import tty
from collections import deque
from typing import Deque, List, Optional, Protocol, TextIO

from .keys import KeyCode, KeyEvent, KeyModifiers

ESC = "\x1b"
ENTER_ALT_SCREEN = "\x1b[?1049h"
LEAVE_ALT_SCREEN = "\x1b[?1049l"

_CSI_KEYS = {
    "A": KeyCode.UP,
    "B": KeyCode.DOWN,
    "C": KeyCode.RIGHT,
    "D": KeyCode.LEFT,
}


class Terminal(Protocol):
    def enter(self) -> None: ...

    def leave(self) -> None: ...

    def poll_event(self) -> Optional[KeyEvent]: ...

    def write(self, text: str) -> None: ...


def _control_key(ch: str) -> KeyEvent:
    code = ord(ch)
    if ch == "\r":
        return KeyEvent(KeyCode.ENTER)
    if ch == "\t":
        return KeyEvent(KeyCode.TAB)
    if ch in ("\x7f", "\x08"):
        return KeyEvent(KeyCode.BACKSPACE)
    if code == 0:
        return KeyEvent(KeyCode.CHAR, " ", KeyModifiers.CONTROL)
    if code <= 0x1A:
        return KeyEvent(KeyCode.CHAR, chr(code + 0x60), KeyModifiers.CONTROL)
    # 0x1C..0x1F: Ctrl+\ Ctrl+] Ctrl+^ Ctrl+_
    return KeyEvent(KeyCode.CHAR, chr(code + 0x40), KeyModifiers.CONTROL)


def parse_keys(data: bytes) -> List[KeyEvent]:
    """Decode one read of raw-mode terminal input into key events.

    A lone ESC (nothing following in the same read) is the Escape key; ESC
    followed by ``[`` or ``O`` starts a control sequence, and ESC followed by
    a printable character is that character with Alt held.
    """
    text = data.decode("utf-8", errors="replace")
    events: List[KeyEvent] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch == ESC:
            nxt = text[i + 1] if i + 1 < n else ""
            if nxt in ("[", "O") and i + 2 < n:
                end = i + 2
                # parameter bytes run until the final byte (0x40..0x7E)
                while end < n and not "\x40" <= text[end] <= "\x7e":
                    end += 1
                final = text[end] if end < n else ""
                if end == i + 2 and final in _CSI_KEYS:
                    events.append(KeyEvent(_CSI_KEYS[final]))
                else:
                    events.append(KeyEvent(KeyCode.OTHER))
                i = end + 1
                continue
            if nxt and nxt != ESC and nxt.isprintable():
                events.append(KeyEvent(KeyCode.CHAR, nxt, KeyModifiers.ALT))
                i += 2
                continue
            events.append(KeyEvent(KeyCode.ESC))
            i += 1
            continue
        if ch == "\ufffd":  # undecodable input
            events.append(KeyEvent(KeyCode.OTHER))
        elif ord(ch) < 0x20 or ch == "\x7f":
            events.append(_control_key(ch))
        else:
            events.append(KeyEvent(KeyCode.CHAR, ch))
        i += 1
    return events


class RawTerminal:
    """The controlling terminal in raw mode on the alternate screen."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self._in = stdin or sys.stdin
        self._out = stdout or sys.stdout
        self._saved: Optional[list] = None
        self._pending: Deque[KeyEvent] = deque()

    def enter(self) -> None:
        fd = self._in.fileno()
        self._saved = termios.tcgetattr(fd)
        tty.setraw(fd)
        self.write(ENTER_ALT_SCREEN)

    def leave(self) -> None:
        if self._saved is not None:
            termios.tcsetattr(self._in.fileno(), termios.TCSADRAIN, self._saved)
            self._saved = None
        self.write(LEAVE_ALT_SCREEN)

    def poll_event(self) -> Optional[KeyEvent]:
        """Return the next key event without blocking, or None."""
        if not self._pending:
            fd = self._in.fileno()
            ready, _, _ = select.select([fd], [], [], 0)
            if ready:
                self._pending.extend(parse_keys(os.read(fd, 1024)))
        return self._pending.popleft() if self._pending else None

    def write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()
