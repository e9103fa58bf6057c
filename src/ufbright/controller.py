"""
Interactive brightness control loop.

Keys (acted on when released):
    Left / Right   one step down / up (1%)
    Down / Up      five steps down / up (5%)
    q              quit

The loop is single-threaded: it blocks on the next key event, then performs
at most one read-modify-write against the device before waiting again.
Brightness is re-read from the device on every adjustment, so changes made
with the display's own controls are picked up.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional, Protocol

from .constants import BIG_STEP_MULTIPLIER, DEBOUNCE_S, ModelProfile
from .protocol import BrightnessDevice, BrightnessReadError, BrightnessWriteError

log = logging.getLogger(__name__)


# =========================================================================
# Key events
# =========================================================================

class KeyCode(Enum):
    LEFT = auto()
    RIGHT = auto()
    UP = auto()
    DOWN = auto()
    CHAR = auto()
    OTHER = auto()


class KeyKind(Enum):
    PRESS = auto()
    REPEAT = auto()
    RELEASE = auto()


@dataclass(frozen=True)
class KeyEvent:
    code: KeyCode
    kind: KeyKind = KeyKind.RELEASE
    char: Optional[str] = None


class KeyCommand(Enum):
    STEP_DOWN = auto()
    BIG_STEP_DOWN = auto()
    STEP_UP = auto()
    BIG_STEP_UP = auto()
    QUIT = auto()
    IGNORED = auto()


_KEY_COMMANDS = {
    KeyCode.LEFT: KeyCommand.STEP_DOWN,
    KeyCode.DOWN: KeyCommand.BIG_STEP_DOWN,
    KeyCode.RIGHT: KeyCommand.STEP_UP,
    KeyCode.UP: KeyCommand.BIG_STEP_UP,
}

QUIT_CHAR = 'q'


def command_for_event(event: KeyEvent) -> KeyCommand:
    """Map a key event to a command; only releases are acted on."""
    if event.kind is not KeyKind.RELEASE:
        return KeyCommand.IGNORED
    if event.code is KeyCode.CHAR:
        return KeyCommand.QUIT if event.char == QUIT_CHAR else KeyCommand.IGNORED
    return _KEY_COMMANDS.get(event.code, KeyCommand.IGNORED)


# =========================================================================
# Step arithmetic
# =========================================================================

def command_delta(command: KeyCommand, profile: ModelProfile) -> int:
    """Signed raw-unit change for an adjustment command (0 otherwise)."""
    step = profile.unit_step
    return {
        KeyCommand.STEP_DOWN: -step,
        KeyCommand.BIG_STEP_DOWN: -step * BIG_STEP_MULTIPLIER,
        KeyCommand.STEP_UP: step,
        KeyCommand.BIG_STEP_UP: step * BIG_STEP_MULTIPLIER,
    }.get(command, 0)


def apply_command(current: int, command: KeyCommand, profile: ModelProfile) -> int:
    """Compute the new brightness step for *command*.

    The delta is applied in raw units and saturates at the model's
    min/max brightness instead of wrapping.  The result is snapped back onto
    the step table so it can always be written.
    """
    target = current + command_delta(command, profile)
    if target < profile.min_brightness:
        target = profile.min_brightness
    elif target > profile.max_brightness:
        target = profile.max_brightness
    return profile.steps.nearest(target)


# =========================================================================
# Collaborator interfaces (terminal shell)
# =========================================================================

class KeySource(Protocol):
    def next_key_event(self) -> KeyEvent:
        """Block until the next key event."""


class ProgressDisplay(Protocol):
    def set_position(self, percent: int) -> None:
        ...

    def set_message(self, text: str) -> None:
        ...


# =========================================================================
# Control loop
# =========================================================================

class ControlState(Enum):
    INIT = auto()
    WAITING_FOR_KEY = auto()
    ADJUSTING = auto()
    CLOSING = auto()


class BrightnessController:
    """Drives one device from key events until the user quits.

    Transport errors during an adjustment never end the loop: a failed read
    is retried once, then the adjustment is skipped and the failure shown.
    Only a failed initial read propagates out of :meth:`run`.
    """

    def __init__(
        self,
        device: BrightnessDevice,
        keys: KeySource,
        display: ProgressDisplay,
        sleep: Callable[[float], None] = time.sleep,
        debounce_s: float = DEBOUNCE_S,
    ):
        self.device = device
        self.keys = keys
        self.display = display
        self._sleep = sleep
        self._debounce_s = debounce_s
        self.state = ControlState.INIT

    def _read_step(self) -> int:
        try:
            return self.device.read_step()
        except BrightnessReadError as e:
            log.warning("%s; retrying once", e)
            return self.device.read_step()

    def _show(self, step: int) -> None:
        self.display.set_position(self.device.percent(step))
        self.display.set_message(str(step))

    def run(self) -> None:
        """Run until the quit key is released."""
        self.state = ControlState.INIT
        self._show(self._read_step())

        self.state = ControlState.WAITING_FOR_KEY
        while self.state is not ControlState.CLOSING:
            event = self.keys.next_key_event()
            command = command_for_event(event)

            if command is KeyCommand.QUIT:
                log.debug("Quit requested")
                self.state = ControlState.CLOSING
            elif command is not KeyCommand.IGNORED:
                self.state = ControlState.ADJUSTING
                self.adjust(command)
                self.state = ControlState.WAITING_FOR_KEY

    def adjust(self, command: KeyCommand) -> Optional[int]:
        """Apply one command to the device.

        Returns the step written, or None if the adjustment was skipped.
        """
        try:
            current = self._read_step()
        except BrightnessReadError as e:
            log.warning("Skipping %s: %s", command.name, e)
            self.display.set_message("read failed")
            return None

        target = apply_command(current, command, self.device.profile)
        log.debug("%s: %d -> %d", command.name, current, target)

        try:
            self.device.write(target)
        except BrightnessWriteError as e:
            log.warning("Skipping %s: %s", command.name, e)
            self.display.set_message("write failed")
            return None

        self._show(target)
        self._sleep(self._debounce_s)
        return target
