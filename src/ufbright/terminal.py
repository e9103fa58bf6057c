"""
Curses terminal shell for the interactive control loop.

``TerminalSession`` puts the terminal into raw mode for the duration of a
``with`` block and always restores it, whichever way the block exits.
Inside, ``CursesKeySource`` feeds key events to the controller and
``CursesProgressDisplay`` draws the brightness line and bar.
"""

from __future__ import annotations

import curses
import logging
from typing import Callable, Optional

from .controller import KeyCode, KeyEvent, KeyKind

log = logging.getLogger(__name__)

BAR_WIDTH = 50

HELP_TEXT = "Left/Right: 1%   Down/Up: 5%   q: quit"

_ARROW_KEYS = {
    curses.KEY_LEFT: KeyCode.LEFT,
    curses.KEY_RIGHT: KeyCode.RIGHT,
    curses.KEY_UP: KeyCode.UP,
    curses.KEY_DOWN: KeyCode.DOWN,
}


class TerminalSession:
    """Raw-mode curses screen, released on exit."""

    def __init__(self):
        self.screen = None

    def __enter__(self) -> "TerminalSession":
        self.screen = curses.initscr()
        try:
            curses.raw()
            curses.noecho()
            self.screen.keypad(True)
            try:
                curses.curs_set(0)
            except curses.error:
                pass  # terminal cannot hide the cursor
        except curses.error:
            self._restore()
            raise
        log.debug("Terminal in raw mode")
        return self

    def __exit__(self, *exc):
        self._restore()

    def _restore(self) -> None:
        if self.screen is None:
            return
        try:
            self.screen.keypad(False)
            curses.noraw()
            curses.echo()
        finally:
            curses.endwin()
            self.screen = None
            log.debug("Terminal restored")


def translate_key(key: int) -> KeyEvent:
    """Convert a curses ``getch`` code into a key event.

    A terminal delivers whole keystrokes, so every key is reported as
    released.  Resize notifications are not keystrokes.
    """
    if key in _ARROW_KEYS:
        return KeyEvent(_ARROW_KEYS[key])
    if key == curses.KEY_RESIZE:
        return KeyEvent(KeyCode.OTHER, KeyKind.PRESS)
    if 0 <= key < 256:
        return KeyEvent(KeyCode.CHAR, char=chr(key))
    return KeyEvent(KeyCode.OTHER)


class CursesKeySource:
    """Blocking key reader over a curses window.

    *on_resize* is called when the terminal reports a new size, before the
    resize event is handed on.
    """

    def __init__(self, window, on_resize: Optional[Callable[[], None]] = None):
        self._window = window
        self._on_resize = on_resize

    def next_key_event(self) -> KeyEvent:
        key = self._window.getch()
        if key == curses.KEY_RESIZE and self._on_resize is not None:
            self._on_resize()
        return translate_key(key)


def render_bar(percent: int, width: int = BAR_WIDTH) -> str:
    filled = round(width * percent / 100)
    return "[" + "#" * filled + "-" * (width - filled) + "]"


class CursesProgressDisplay:
    """``brightness = N% (raw)`` line with a bar underneath."""

    def __init__(self, window):
        self._window = window
        self.position = 0
        self.message = ""

    def set_position(self, percent: int) -> None:
        self.position = percent
        self._draw()

    def set_message(self, text: str) -> None:
        self.message = text
        self._draw()

    def redraw(self) -> None:
        self._draw()

    def _draw(self) -> None:
        win = self._window
        win.erase()
        try:
            win.addstr(0, 0, f"brightness = {self.position}% ({self.message})")
            win.addstr(1, 0, render_bar(self.position))
            win.addstr(3, 0, HELP_TEXT)
        except curses.error:
            pass  # window too small; keep what fits
        win.refresh()
