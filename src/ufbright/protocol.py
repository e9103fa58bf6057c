#!/usr/bin/env python3
"""
Brightness feature report codec.

Report layout (7 bytes, report ID 0)::

    [0x00,        # report ID placeholder
     lo, hi,      # brightness, little-endian u16
     0, 0, 0, 0]  # reserved

Reads return the current raw brightness; writes set it.  The device only
accepts levels from the model's step table, so ``write_brightness`` refuses
anything else without touching the bus.
"""

from __future__ import annotations

import logging
import struct
from typing import Optional

from .constants import REPORT_ID, REPORT_SIZE, ModelProfile
from .hid_transport import DeviceHandle, TransportError
from .steps import StepTable

log = logging.getLogger(__name__)

# report ID, LE u16, 4 pad bytes
_REPORT_FORMAT = '<BH4x'


class BrightnessReadError(TransportError):
    """Reading the brightness feature report failed."""


class BrightnessWriteError(TransportError):
    """Writing the brightness feature report failed."""


# =========================================================================
# Codec
# =========================================================================

def encode_report(value: int) -> bytes:
    """Pack *value* into a 7-byte brightness feature report."""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"brightness {value} does not fit in 16 bits")
    return struct.pack(_REPORT_FORMAT, REPORT_ID, value)


def decode_report(report: bytes) -> int:
    """Extract the brightness from a 7-byte feature report."""
    if len(report) != REPORT_SIZE:
        raise ValueError(f"feature report must be {REPORT_SIZE} bytes, got {len(report)}")
    _, value = struct.unpack(_REPORT_FORMAT, bytes(report))
    return value


# =========================================================================
# Device I/O
# =========================================================================

def read_brightness(handle: DeviceHandle) -> int:
    """Read the raw (unquantized) brightness from the device.

    Raises:
        BrightnessReadError: Transport failure or a short report.
    """
    try:
        report = handle.get_feature_report(REPORT_ID, REPORT_SIZE)
    except TransportError as e:
        raise BrightnessReadError(f"brightness read failed: {e}") from e

    if len(report) != REPORT_SIZE:
        raise BrightnessReadError(
            f"brightness read returned {len(report)} bytes, expected {REPORT_SIZE}")

    value = decode_report(report)
    log.debug("RX %s -> %d", report.hex(), value)
    return value


def write_brightness(handle: DeviceHandle, value: int, table: StepTable) -> bool:
    """Write *value* to the device if it is a valid step.

    Returns:
        False (and no I/O) when *value* is not in *table*; True once the
        report has been sent.

    Raises:
        BrightnessWriteError: Transport failure or a short write.
    """
    if value not in table:
        log.debug("Refusing to write %d: not a brightness step", value)
        return False

    report = encode_report(value)
    try:
        written = handle.send_feature_report(report)
    except TransportError as e:
        raise BrightnessWriteError(f"brightness write failed: {e}") from e

    if written != REPORT_SIZE:
        raise BrightnessWriteError(
            f"brightness write sent {written} bytes, expected {REPORT_SIZE}")

    log.debug("TX %s (%d)", report.hex(), value)
    return True


# =========================================================================
# Convenience wrapper
# =========================================================================

class BrightnessDevice:
    """An open brightness interface bound to its model profile.

    Owns the handle: ``close()`` (or leaving the ``with`` block) releases it.
    """

    def __init__(self, handle: DeviceHandle, profile: ModelProfile):
        self.handle = handle
        self.profile = profile

    @property
    def steps(self) -> StepTable:
        return self.profile.steps

    def read_raw(self) -> int:
        return read_brightness(self.handle)

    def read_step(self) -> int:
        """Current brightness snapped onto the step table."""
        return self.steps.nearest(self.read_raw())

    def percent(self, step: Optional[int] = None) -> int:
        """Percentage of *step*, or of the current device brightness."""
        if step is None:
            step = self.read_step()
        return self.steps.percent_index(step)

    def write(self, value: int) -> bool:
        return write_brightness(self.handle, value, self.steps)

    def set_percent(self, percent: int) -> int:
        """Write the step for *percent* (1..100); returns the raw value."""
        value = self.steps.value_for_percent(percent)
        self.write(value)
        return value

    def close(self) -> None:
        self.handle.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
