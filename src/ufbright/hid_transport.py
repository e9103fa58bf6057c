#!/usr/bin/env python3
"""
HID transport layer for the display's brightness interface.

The ``HidTransport`` ABC abstracts device enumeration and feature-report I/O
so that:
  • Tests can inject a mock transport (no real hardware needed).
  • ``HidApiTransport`` provides real access via HIDAPI (hidraw / IOHIDManager).
  • ``PyUsbTransport`` provides an alternative via pyusb HID class requests.

Feature reports are exchanged as ``bytes`` whose first byte is the report ID,
exactly as HIDAPI does (``0x00`` for devices without numbered reports).

Linux dependencies (install one):
  • hidapi: ``pip install hidapi`` (needs libhidapi: ``apt install libhidapi-hidraw0``)
  • pyusb:  ``pip install pyusb``  (needs libusb1: ``apt install libusb-1.0-0``)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Union

import hid
import usb.core
import usb.util

from .constants import USB_TIMEOUT_MS

log = logging.getLogger(__name__)

# =========================================================================
# HID class request constants (USB HID 1.11, section 7.2)
# =========================================================================

HID_INTERFACE_CLASS = 0x03

HID_GET_REPORT = 0x01
HID_SET_REPORT = 0x09

# bmRequestType
REQ_TYPE_CLASS_IN = 0xA1    # Device to Host | Class | Interface
REQ_TYPE_CLASS_OUT = 0x21   # Host to Device | Class | Interface

# wValue high byte
REPORT_TYPE_FEATURE = 0x03


class TransportError(OSError):
    """Low-level HID I/O failed."""


# =========================================================================
# Data classes
# =========================================================================

@dataclass(frozen=True)
class DeviceDescriptor:
    """One enumerated HID interface."""
    vendor_id: int
    product_id: int
    product_name: Optional[str] = None
    path: Union[bytes, str, None] = None
    serial_number: Optional[str] = None
    manufacturer_name: Optional[str] = None
    interface_number: int = -1

    @property
    def usb_id(self) -> str:
        return f"{self.vendor_id:04x}:{self.product_id:04x}"


# =========================================================================
# Abstract transport
# =========================================================================

class DeviceHandle(ABC):
    """Exclusively owned, open connection to one HID interface."""

    @abstractmethod
    def get_feature_report(self, report_id: int, size: int) -> bytes:
        """Read a feature report.

        *size* counts the report ID byte.  Returns the report including the
        report ID byte; may be shorter than *size* if the device sent less.

        Raises:
            TransportError: The transfer failed.
        """

    @abstractmethod
    def send_feature_report(self, data: bytes) -> int:
        """Write a feature report (``data[0]`` is the report ID).

        Returns the number of bytes written, counting the report ID byte.

        Raises:
            TransportError: The transfer failed.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the device.  Safe to call more than once."""

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class HidTransport(ABC):
    """Device registry: enumeration plus opening, mockable for testing."""

    name = "abstract"

    @abstractmethod
    def list_devices(self, vendor_id: int = 0, product_id: int = 0) -> List[DeviceDescriptor]:
        """Enumerate HID interfaces; 0 means "any" for either ID."""

    @abstractmethod
    def open(self, descriptor: DeviceDescriptor) -> DeviceHandle:
        """Open *descriptor* for exclusive use.

        Raises:
            TransportError: The device could not be opened.
        """


# =========================================================================
# Real transport: HIDAPI
# =========================================================================

class HidApiHandle(DeviceHandle):
    """Open ``hid.device`` wrapper."""

    def __init__(self, device):
        self._device = device

    def get_feature_report(self, report_id: int, size: int) -> bytes:
        if self._device is None:
            raise TransportError("device is closed")
        try:
            data = self._device.get_feature_report(report_id, size)
        except (OSError, ValueError) as e:
            raise TransportError(f"get_feature_report failed: {e}") from e
        return bytes(data)

    def send_feature_report(self, data: bytes) -> int:
        if self._device is None:
            raise TransportError("device is closed")
        try:
            written = self._device.send_feature_report(bytes(data))
        except (OSError, ValueError) as e:
            raise TransportError(f"send_feature_report failed: {e}") from e
        if written < 0:
            raise TransportError(f"send_feature_report failed: {self._device.error()}")
        return written

    def close(self) -> None:
        if self._device is not None:
            self._device.close()
            self._device = None


class HidApiTransport(HidTransport):
    """Transport using HIDAPI (hidapi library).

    HIDAPI uses the OS HID driver; on Linux the hidraw node needs read/write
    permission (see ``ufbright setup-udev``).

    Requires: ``pip install hidapi``
    """

    name = "hid"

    def list_devices(self, vendor_id: int = 0, product_id: int = 0) -> List[DeviceDescriptor]:
        return [
            DeviceDescriptor(
                vendor_id=info['vendor_id'],
                product_id=info['product_id'],
                product_name=info.get('product_string') or None,
                path=info.get('path'),
                serial_number=info.get('serial_number') or None,
                manufacturer_name=info.get('manufacturer_string') or None,
                interface_number=info.get('interface_number', -1),
            )
            for info in hid.enumerate(vendor_id, product_id)
        ]

    def open(self, descriptor: DeviceDescriptor) -> DeviceHandle:
        device = hid.device()
        try:
            if descriptor.path is not None:
                path = descriptor.path
                device.open_path(path.encode() if isinstance(path, str) else path)
            else:
                device.open(descriptor.vendor_id, descriptor.product_id,
                            descriptor.serial_number)
        except (OSError, ValueError) as e:
            raise TransportError(
                f"cannot open HID device {descriptor.usb_id}: {e}") from e
        log.debug("Opened %s via hidapi (path=%r)", descriptor.usb_id, descriptor.path)
        return HidApiHandle(device)


# =========================================================================
# Real transport: PyUSB  (libusb backend)
# =========================================================================
# Feature reports travel over the default control pipe:
#   GET_REPORT: bmRequestType=0xA1 bRequest=0x01 wValue=(3<<8)|id wIndex=intf
#   SET_REPORT: bmRequestType=0x21 bRequest=0x09 wValue=(3<<8)|id wIndex=intf
# With report ID 0 the data stage carries no ID byte.

def _usb_string(dev, index: int) -> Optional[str]:
    """Read a USB string descriptor; None when absent or not permitted."""
    if not index:
        return None
    try:
        return usb.util.get_string(dev, index)
    except (usb.core.USBError, ValueError, NotImplementedError):
        return None


class PyUsbHandle(DeviceHandle):
    """HID interface claimed through libusb."""

    def __init__(self, device, interface: int, timeout: int = USB_TIMEOUT_MS):
        self._device = device
        self._interface = interface
        self._timeout = timeout
        self._detached = False

    def claim(self) -> None:
        """Detach the kernel HID driver (Linux) and claim the interface.

        Backends without kernel driver control (macOS, Windows) skip the
        detach step.
        """
        try:
            active = self._device.is_kernel_driver_active(self._interface)
        except NotImplementedError:
            active = False
        if active:
            self._device.detach_kernel_driver(self._interface)
            self._detached = True
        usb.util.claim_interface(self._device, self._interface)

    def get_feature_report(self, report_id: int, size: int) -> bytes:
        if self._device is None:
            raise TransportError("device is closed")
        length = size - 1 if report_id == 0 else size
        try:
            data = self._device.ctrl_transfer(
                REQ_TYPE_CLASS_IN, HID_GET_REPORT,
                (REPORT_TYPE_FEATURE << 8) | report_id, self._interface,
                length, timeout=self._timeout,
            )
        except usb.core.USBError as e:
            raise TransportError(f"GET_REPORT failed: {e}") from e
        data = bytes(data)
        return bytes([report_id]) + data if report_id == 0 else data

    def send_feature_report(self, data: bytes) -> int:
        if self._device is None:
            raise TransportError("device is closed")
        report_id = data[0]
        payload = bytes(data[1:]) if report_id == 0 else bytes(data)
        try:
            sent = self._device.ctrl_transfer(
                REQ_TYPE_CLASS_OUT, HID_SET_REPORT,
                (REPORT_TYPE_FEATURE << 8) | report_id, self._interface,
                payload, timeout=self._timeout,
            )
        except usb.core.USBError as e:
            raise TransportError(f"SET_REPORT failed: {e}") from e
        return sent + 1 if report_id == 0 else sent

    def close(self) -> None:
        if self._device is None:
            return
        try:
            try:
                usb.util.release_interface(self._device, self._interface)
            except usb.core.USBError as e:
                log.warning("Could not release interface %d: %s", self._interface, e)
            if self._detached:
                try:
                    self._device.attach_kernel_driver(self._interface)
                except (usb.core.USBError, NotImplementedError) as e:
                    log.warning("Could not hand interface %d back to the kernel: %s",
                                self._interface, e)
                self._detached = False
        finally:
            usb.util.dispose_resources(self._device)
            self._device = None


class PyUsbTransport(HidTransport):
    """Transport using pyusb (libusb backend) HID class requests.

    Useful where no hidraw node exists for the interface.  Each HID
    interface of a matching USB device becomes one descriptor; its name is
    the interface string, falling back to the device product string.

    Requires: ``pip install pyusb`` + ``apt install libusb-1.0-0``
    """

    name = "pyusb"

    def __init__(self, timeout: int = USB_TIMEOUT_MS):
        self._timeout = timeout

    def list_devices(self, vendor_id: int = 0, product_id: int = 0) -> List[DeviceDescriptor]:
        kwargs = {'find_all': True}
        if vendor_id:
            kwargs['idVendor'] = vendor_id
        if product_id:
            kwargs['idProduct'] = product_id

        descriptors = []
        for dev in usb.core.find(**kwargs):
            product = _usb_string(dev, dev.iProduct)
            manufacturer = _usb_string(dev, dev.iManufacturer)
            serial = _usb_string(dev, dev.iSerialNumber)
            for cfg in dev:
                for intf in cfg:
                    if intf.bInterfaceClass != HID_INTERFACE_CLASS:
                        continue
                    descriptors.append(DeviceDescriptor(
                        vendor_id=dev.idVendor,
                        product_id=dev.idProduct,
                        product_name=_usb_string(dev, intf.iInterface) or product,
                        path=f"{dev.bus}-{dev.address}:{intf.bInterfaceNumber}",
                        serial_number=serial,
                        manufacturer_name=manufacturer,
                        interface_number=intf.bInterfaceNumber,
                    ))
        return descriptors

    def open(self, descriptor: DeviceDescriptor) -> DeviceHandle:
        bus, address = _parse_usb_path(descriptor.path)
        dev = usb.core.find(idVendor=descriptor.vendor_id,
                            idProduct=descriptor.product_id,
                            bus=bus, address=address)
        if dev is None:
            raise TransportError(f"USB device {descriptor.usb_id} disappeared")
        handle = PyUsbHandle(dev, descriptor.interface_number, self._timeout)
        try:
            handle.claim()
        except (usb.core.USBError, NotImplementedError) as e:
            handle.close()
            raise TransportError(
                f"cannot claim interface {descriptor.interface_number} "
                f"of {descriptor.usb_id}: {e}") from e
        log.debug("Claimed %s interface %d via pyusb",
                  descriptor.usb_id, descriptor.interface_number)
        return handle


def _parse_usb_path(path) -> tuple:
    """Split a ``"bus-address:interface"`` path into (bus, address)."""
    try:
        bus, rest = str(path).split('-', 1)
        address = rest.split(':', 1)[0]
        return int(bus), int(address)
    except ValueError:
        raise TransportError(f"not a pyusb device path: {path!r}") from None


# =========================================================================
# Backend selection
# =========================================================================

TRANSPORTS = {
    HidApiTransport.name: HidApiTransport,
    PyUsbTransport.name: PyUsbTransport,
}


def create_transport(backend: str = "hid") -> HidTransport:
    """Instantiate the transport registered under *backend*."""
    try:
        return TRANSPORTS[backend]()
    except KeyError:
        raise ValueError(
            f"unknown backend {backend!r} (choose from {', '.join(TRANSPORTS)})") from None
