#!/usr/bin/env python3
"""
UltraFine brightness interface detector.

The display hub enumerates several HID interfaces under the same vendor and
product ID (camera controls, speakers, ...).  Only the one whose product
string reads ``HID BRIGHTNESS`` accepts the brightness feature report, so by
default a candidate must match all three of vendor ID, product ID and name.

Matching strategies are plain predicates over ``DeviceDescriptor`` so an
alternate one (IDs only, for firmware that reports another name) can be
swapped in without touching the control loop.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .constants import LG_VENDOR_ID, ModelProfile
from .hid_transport import DeviceDescriptor, DeviceHandle, HidTransport, TransportError

log = logging.getLogger(__name__)

DevicePredicate = Callable[[DeviceDescriptor], bool]


class DeviceOpenError(RuntimeError):
    """A matching device was found but could not be opened."""


# =========================================================================
# Match strategies
# =========================================================================

def match_ids(profile: ModelProfile) -> DevicePredicate:
    """Match on vendor and product ID only."""
    def predicate(desc: DeviceDescriptor) -> bool:
        return (desc.vendor_id == profile.vendor_id
                and desc.product_id == profile.product_id)
    return predicate


def match_product_name(profile: ModelProfile) -> DevicePredicate:
    """Match on vendor ID, product ID and the exact product string.

    A missing product string never matches.
    """
    ids = match_ids(profile)

    def predicate(desc: DeviceDescriptor) -> bool:
        return (ids(desc)
                and desc.product_name is not None
                and desc.product_name == profile.product_name)
    return predicate


MATCH_STRATEGIES: Dict[str, Callable[[ModelProfile], DevicePredicate]] = {
    'name': match_product_name,
    'ids': match_ids,
}


def get_predicate(strategy: str, profile: ModelProfile) -> DevicePredicate:
    """Build the predicate registered under *strategy* for *profile*."""
    try:
        factory = MATCH_STRATEGIES[strategy]
    except KeyError:
        raise ValueError(
            f"unknown match strategy {strategy!r} "
            f"(choose from {', '.join(MATCH_STRATEGIES)})") from None
    return factory(profile)


# =========================================================================
# Discovery
# =========================================================================

def find_device(
    transport: HidTransport,
    profile: ModelProfile,
    predicate: Optional[DevicePredicate] = None,
) -> Optional[DeviceHandle]:
    """Open the first enumerated interface accepted by *predicate*.

    Args:
        transport: Device registry to scan.
        profile: Model whose IDs drive the default predicate.
        predicate: Match strategy; defaults to :func:`match_product_name`.

    Returns:
        The open handle, or None when nothing matches.

    Raises:
        DeviceOpenError: A match was found but opening it failed.
    """
    if predicate is None:
        predicate = match_product_name(profile)

    for desc in transport.list_devices(profile.vendor_id):
        if not predicate(desc):
            log.debug("Skipping %s %r (interface %d)",
                      desc.usb_id, desc.product_name, desc.interface_number)
            continue

        log.debug("Matched %s %r at %r", desc.usb_id, desc.product_name, desc.path)
        try:
            handle = transport.open(desc)
        except TransportError as e:
            raise DeviceOpenError(
                f"found {profile.description} ({desc.usb_id}) but could not open it: {e}"
            ) from e
        log.info("Opened %s (%s) via %s", profile.description, desc.usb_id, transport.name)
        return handle

    log.info("No %s found (%s, %r)",
             profile.description, profile.usb_id, profile.product_name)
    return None


def list_candidates(transport: HidTransport, vendor_id: int = LG_VENDOR_ID) -> List[DeviceDescriptor]:
    """All HID interfaces of *vendor_id* (for ``detect --all``)."""
    return transport.list_devices(vendor_id)


def detect_models(
    transport: HidTransport,
    profiles: Iterable[ModelProfile],
    strategy: str = 'name',
) -> List[Tuple[ModelProfile, DeviceDescriptor]]:
    """Pair each attached brightness interface with its model profile.

    Enumerates once per vendor ID; nothing is opened.
    """
    profiles = list(profiles)
    found = []
    by_vendor: Dict[int, List[DeviceDescriptor]] = {}
    for profile in profiles:
        if profile.vendor_id not in by_vendor:
            by_vendor[profile.vendor_id] = transport.list_devices(profile.vendor_id)
        predicate = get_predicate(strategy, profile)
        for desc in by_vendor[profile.vendor_id]:
            if predicate(desc):
                found.append((profile, desc))
    return found
