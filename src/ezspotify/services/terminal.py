"""Single-keypress reads from the controlling terminal.

Owns the cbreak-mode lifecycle so keys arrive without Enter and without
echo. Reads poll with a timeout so callers can observe cancellation.
"""

from __future__ import annotations

import codecs
import os
import sys

from ezspotify.models.player import ESCAPE_KEY

if sys.platform == "win32":
    import msvcrt
    import time
else:
    import select
    import termios
    import tty

# How long to wait after ESC (or a UTF-8 lead byte) for the rest of the key
ESCAPE_SEQUENCE_WAIT = 0.05

# CSI sequences end on a byte in this range
_CSI_FINAL = range(0x40, 0x7F)


class TerminalKeyReader:
    """Read one key at a time from a POSIX terminal file descriptor.

    Use as a context manager; the previous tty attributes are restored on
    exit. Non-tty descriptors (pipes) are read as-is.
    """

    def __init__(self, fd: int | None = None) -> None:
        self._fd = fd
        self._saved_tty_state: list | None = None

    def __enter__(self) -> TerminalKeyReader:
        if self._fd is None:
            self._fd = sys.stdin.fileno()
        if os.isatty(self._fd):
            self._saved_tty_state = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd, termios.TCSANOW)
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._saved_tty_state is not None:
            termios.tcsetattr(self._fd, termios.TCSAFLUSH, self._saved_tty_state)
            self._saved_tty_state = None

    def read_key(self, timeout: float | None = None) -> str | None:
        """Return the next key, or None if nothing arrived within *timeout*.

        A lone ESC is returned as ``ESCAPE_KEY``; escape sequences (arrow
        and function keys) are consumed and yield None. Multi-byte UTF-8
        characters are returned whole.

        Raises:
            EOFError: The input was closed.
        """
        if not self._ready(timeout):
            return None

        data = os.read(self._fd, 1)
        if not data:
            raise EOFError("terminal input closed")

        if data == ESCAPE_KEY.encode():
            if self._ready(ESCAPE_SEQUENCE_WAIT):
                self._skip_escape_sequence()
                return None
            return ESCAPE_KEY

        decoder = codecs.getincrementaldecoder("utf-8")(errors="ignore")
        key = decoder.decode(data)
        while not key and self._ready(ESCAPE_SEQUENCE_WAIT):
            more = os.read(self._fd, 1)
            if not more:
                break
            key = decoder.decode(more)
        return key or None

    def _skip_escape_sequence(self) -> None:
        """Consume one CSI (``ESC [ ... final``) or SS3 (``ESC O x``) sequence.

        Anything else after ESC (an Alt chord) loses only its first byte.
        """
        intro = os.read(self._fd, 1)
        if intro == b"O":
            if self._ready(ESCAPE_SEQUENCE_WAIT):
                os.read(self._fd, 1)
            return
        if intro != b"[":
            return
        while self._ready(ESCAPE_SEQUENCE_WAIT):
            byte = os.read(self._fd, 1)
            if not byte or byte[0] in _CSI_FINAL:
                return

    def _ready(self, timeout: float | None) -> bool:
        readable, _, _ = select.select([self._fd], [], [], timeout)
        return bool(readable)


class WindowsKeyReader:
    """Read one key at a time from the Windows console."""

    def __enter__(self) -> WindowsKeyReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        pass

    def read_key(self, timeout: float | None = None) -> str | None:
        deadline = None if timeout is None else time.monotonic() + timeout
        while not msvcrt.kbhit():
            if deadline is not None and time.monotonic() >= deadline:
                return None
            time.sleep(0.01)

        key = msvcrt.getwch()
        if key in ("\x00", "\xe0"):
            # Prefix of a special key; swallow the scan code
            msvcrt.getwch()
            return None
        return key


def open_key_reader() -> TerminalKeyReader | WindowsKeyReader:
    """Key reader for the current platform's console."""
    if sys.platform == "win32":
        return WindowsKeyReader()
    return TerminalKeyReader()
