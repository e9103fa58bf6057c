"""
ufbright - LG UltraFine display brightness control

Adjusts the backlight of LG UltraFine 4K/5K displays through the
``HID BRIGHTNESS`` feature report of their USB hub.

Usage:
    # As a library
    from ufbright import HidApiTransport, BrightnessDevice, find_device, get_profile
    profile = get_profile('27md5kl')
    handle = find_device(HidApiTransport(), profile)
    with BrightnessDevice(handle, profile) as display:
        display.set_percent(60)

    # Command line
    ufbright              # Arrow keys adjust, q quits
    ufbright get          # Print current brightness
"""

from ufbright.__version__ import __version__
from ufbright.constants import MODEL_PROFILES, ModelProfile, get_profile
from ufbright.controller import BrightnessController, KeyCommand, KeyEvent
from ufbright.device_detector import DeviceOpenError, find_device
from ufbright.hid_transport import HidApiTransport, PyUsbTransport, TransportError
from ufbright.protocol import (
    BrightnessDevice,
    BrightnessReadError,
    BrightnessWriteError,
    read_brightness,
    write_brightness,
)
from ufbright.steps import InvalidStepError, StepTable

__all__ = [
    # Version
    "__version__",
    # Models
    "MODEL_PROFILES",
    "ModelProfile",
    "get_profile",
    "StepTable",
    "InvalidStepError",
    # Device access
    "HidApiTransport",
    "PyUsbTransport",
    "TransportError",
    "find_device",
    "DeviceOpenError",
    "BrightnessDevice",
    "BrightnessReadError",
    "BrightnessWriteError",
    "read_brightness",
    "write_brightness",
    # Control loop
    "BrightnessController",
    "KeyCommand",
    "KeyEvent",
]
