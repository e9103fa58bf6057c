"""
Device constants and per-model profiles for LG UltraFine displays.

The brightness control lives on a dedicated HID interface of the display's
USB hub.  All known models expose it under the LG vendor ID with the
product string ``HID BRIGHTNESS``; only the product ID differs.

Supported models:
- 24MD4KL  (UltraFine 4K, 24")   VID=0x043E, PID=0x9A63
- 27MD5KL  (UltraFine 5K, 27")   VID=0x043E, PID=0x9A70
- 27MD5KA  (UltraFine 5K, 27")   VID=0x043E, PID=0x9A40
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .steps import ULTRAFINE_STEPS, UNIT_STEP, StepTable

# =========================================================================
# USB identifiers
# =========================================================================

LG_VENDOR_ID = 0x043E

PRODUCT_NAME = "HID BRIGHTNESS"

# =========================================================================
# Raw brightness range (firmware units)
# =========================================================================

MIN_BRIGHTNESS = 0x0190   # 400
MAX_BRIGHTNESS = 0xD2F0   # 54000

BIG_STEP_MULTIPLIER = 5

# =========================================================================
# Feature report layout
# =========================================================================

REPORT_ID = 0x00
REPORT_SIZE = 7           # report ID + LE u16 brightness + 4 reserved

# Pause after each write so key-repeat cannot flood the device
DEBOUNCE_S = 0.050

# Control transfer timeout for the pyusb backend
USB_TIMEOUT_MS = 1000


# =========================================================================
# Model profiles
# =========================================================================

@dataclass(frozen=True)
class ModelProfile:
    """Everything the brightness core needs to know about one display model."""
    name: str
    description: str
    product_id: int
    vendor_id: int = LG_VENDOR_ID
    product_name: str = PRODUCT_NAME
    min_brightness: int = MIN_BRIGHTNESS
    max_brightness: int = MAX_BRIGHTNESS
    unit_step: int = UNIT_STEP
    steps: StepTable = field(default=ULTRAFINE_STEPS, repr=False)

    @property
    def usb_id(self) -> str:
        return f"{self.vendor_id:04x}:{self.product_id:04x}"


MODEL_PROFILES: Dict[str, ModelProfile] = {
    '24md4kl': ModelProfile(
        name='24md4kl', description='LG UltraFine 4K (24MD4KL)',
        product_id=0x9A63,
    ),
    '27md5kl': ModelProfile(
        name='27md5kl', description='LG UltraFine 5K (27MD5KL)',
        product_id=0x9A70,
    ),
    '27md5ka': ModelProfile(
        name='27md5ka', description='LG UltraFine 5K (27MD5KA)',
        product_id=0x9A40,
    ),
}

DEFAULT_MODEL = '27md5kl'


def get_profile(name: str) -> ModelProfile:
    """Look up a profile by (case-insensitive) model name.

    Raises:
        KeyError: Unknown model name.
    """
    return MODEL_PROFILES[name.strip().lower()]
