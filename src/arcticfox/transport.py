#!/usr/bin/env python3
"""
HID transport layer for ArcticFox devices (VID 0x0416, PID 0x5020).

The device exposes one interrupt IN and one interrupt OUT endpoint with
64-byte reports.  ``HidTransport`` is the contract the driver consumes:

  • ``open()`` / ``close()``
  • ``write(data)``: split into zero-padded 64-byte output reports
  • ``set_handlers(on_data, on_error)``: inbound reports are delivered
    from a reader thread, one report per ``on_data`` call

Backends:
  • ``PyUsbTransport``: pyusb (libusb), the default
  • ``HidApiTransport``: HIDAPI, optional ``[hid]`` extra

Tests inject a mock transport; no hardware is needed.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

import usb.core
import usb.util

from .constants import (
    BACKENDS,
    HID_REPORT_SIZE,
    PRODUCT_ID,
    READ_POLL_TIMEOUT_MS,
    VENDOR_ID,
)
from .errors import TransportError, TransportOpenError, TransportWriteError

# hidapi is optional ([hid] extra)
try:
    import hid as hidapi
    HIDAPI_AVAILABLE = True
except ImportError:
    HIDAPI_AVAILABLE = False

log = logging.getLogger(__name__)

# USB configuration values
USB_CONFIGURATION = 1
USB_INTERFACE = 0

WRITE_TIMEOUT_MS = 1000

DataHandler = Callable[[bytes], None]
ErrorHandler = Callable[[TransportError], None]


def split_reports(data: bytes, report_size: int = HID_REPORT_SIZE) -> List[bytes]:
    """Split *data* into zero-padded output reports of *report_size* bytes."""
    if not data:
        return []
    return [
        bytes(data[i:i + report_size]).ljust(report_size, b'\x00')
        for i in range(0, len(data), report_size)
    ]


# =========================================================================
# Abstract transport
# =========================================================================

class HidTransport(ABC):
    """Report-oriented transport with a background reader thread."""

    def __init__(self, vid: int = VENDOR_ID, pid: int = PRODUCT_ID):
        self._vid = vid
        self._pid = pid
        self._on_data: Optional[DataHandler] = None
        self._on_error: Optional[ErrorHandler] = None
        self._reader: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._is_open = False

    def set_handlers(self, on_data: Optional[DataHandler],
                     on_error: Optional[ErrorHandler]) -> None:
        """Register inbound report and error notifications."""
        self._on_data = on_data
        self._on_error = on_error

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> None:
        """Open the device and start the reader thread.

        Raises:
            TransportOpenError: Device missing, busy, or inaccessible.
        """
        try:
            self._open_device()
        except TransportOpenError:
            raise
        except Exception as e:
            raise TransportOpenError(
                f"Cannot open device {self._vid:04x}:{self._pid:04x}: {e}"
            ) from e
        self._is_open = True
        self._stop.clear()
        self._reader = threading.Thread(
            target=self._read_loop, name=f"{type(self).__name__}-reader", daemon=True,
        )
        self._reader.start()
        log.debug("%s opened %04x:%04x", type(self).__name__, self._vid, self._pid)

    def close(self) -> None:
        """Stop the reader thread and release the device."""
        self._stop.set()
        reader, self._reader = self._reader, None
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=1.0)
        if self._is_open:
            self._is_open = False
            self._close_device()
            log.debug("%s closed", type(self).__name__)

    def write(self, data: bytes) -> int:
        """Write *data* as one or more output reports.

        Returns:
            Number of payload bytes written.

        Raises:
            TransportWriteError: Transport closed or the backend failed.
        """
        if not self._is_open:
            raise TransportWriteError("Transport not open")
        for report in split_reports(data):
            try:
                self._write_report(report)
            except Exception as e:
                raise TransportWriteError(f"HID write failed: {e}") from e
        return len(data)

    def _read_loop(self) -> None:
        while not self._stop.is_set():
            try:
                report = self._read_report()
            except Exception as e:
                if self._stop.is_set():
                    break
                log.debug("HID read failed: %s", e)
                if self._on_error:
                    self._on_error(TransportError(f"HID read failed: {e}", fatal=True))
                break
            if report and self._on_data and not self._stop.is_set():
                self._on_data(report)

    # -- Backend hooks ---------------------------------------------------

    @abstractmethod
    def _open_device(self) -> None: ...

    @abstractmethod
    def _close_device(self) -> None: ...

    @abstractmethod
    def _write_report(self, report: bytes) -> None: ...

    @abstractmethod
    def _read_report(self) -> bytes:
        """Read one input report; b'' when nothing arrived in time."""


# =========================================================================
# Real transport: PyUSB  (libusb backend)
# =========================================================================

class PyUsbTransport(HidTransport):
    """Interrupt-endpoint transport using pyusb.

    Requires: ``pip install pyusb`` + ``apt install libusb-1.0-0``
    """

    def __init__(self, vid: int = VENDOR_ID, pid: int = PRODUCT_ID):
        super().__init__(vid, pid)
        self._device = None
        self._ep_out: Optional[int] = None
        self._ep_in: Optional[int] = None

    def _open_device(self) -> None:
        self._device = usb.core.find(idVendor=self._vid, idProduct=self._pid)
        if self._device is None:
            raise TransportOpenError(
                f"USB device not found: VID={self._vid:#06x} PID={self._pid:#06x}"
            )

        # Linux binds usbhid to the interface; take it over
        try:
            if self._device.is_kernel_driver_active(USB_INTERFACE):
                self._device.detach_kernel_driver(USB_INTERFACE)
                log.debug("Detached kernel driver from interface %d", USB_INTERFACE)
        except (NotImplementedError, usb.core.USBError) as e:
            log.debug("Kernel driver detach: %s", e)

        self._device.set_configuration(USB_CONFIGURATION)
        usb.util.claim_interface(self._device, USB_INTERFACE)
        self._detect_endpoints()
        if self._ep_in is None or self._ep_out is None:
            self._close_device()
            raise TransportOpenError("Interrupt endpoints not found on interface 0")

    def _detect_endpoints(self) -> None:
        cfg = self._device.get_active_configuration()
        intf = cfg[(USB_INTERFACE, 0)]
        for ep in intf:
            direction = usb.util.endpoint_direction(ep.bEndpointAddress)
            if direction == usb.util.ENDPOINT_OUT and self._ep_out is None:
                self._ep_out = ep.bEndpointAddress
            elif direction == usb.util.ENDPOINT_IN and self._ep_in is None:
                self._ep_in = ep.bEndpointAddress
        log.debug("Endpoints: OUT=0x%02x IN=0x%02x",
                  self._ep_out or 0, self._ep_in or 0)

    def _close_device(self) -> None:
        if self._device is not None:
            try:
                usb.util.release_interface(self._device, USB_INTERFACE)
            except usb.core.USBError as e:
                log.debug("Release interface: %s", e)
            usb.util.dispose_resources(self._device)
            self._device = None
        self._ep_in = self._ep_out = None

    def _write_report(self, report: bytes) -> None:
        self._device.write(self._ep_out, report, timeout=WRITE_TIMEOUT_MS)

    def _read_report(self) -> bytes:
        try:
            data = self._device.read(self._ep_in, HID_REPORT_SIZE,
                                     timeout=READ_POLL_TIMEOUT_MS)
        except usb.core.USBTimeoutError:
            return b''
        return bytes(data)

    @property
    def device(self) -> Any:
        """Raw pyusb device handle (for diagnostics)."""
        return self._device


# =========================================================================
# Real transport: HIDAPI
# =========================================================================

class HidApiTransport(HidTransport):
    """Transport using the OS HID driver through HIDAPI.

    Does not need root or a detached kernel driver on most distros.

    Requires: ``pip install hidapi`` + ``apt install libhidapi-dev``
    """

    def __init__(self, vid: int = VENDOR_ID, pid: int = PRODUCT_ID):
        if not HIDAPI_AVAILABLE:
            raise ImportError(
                "hidapi is not installed. Install with: pip install hidapi\n"
                "Also need libhidapi: apt install libhidapi-dev (Debian/Ubuntu) "
                "or dnf install hidapi-devel (Fedora)"
            )
        super().__init__(vid, pid)
        self._device = None

    def _open_device(self) -> None:
        # 'hid' package: Device(vid=, pid=); 'hidapi' package: device().open()
        device_cls = getattr(hidapi, 'Device', None)
        if device_cls is not None:
            self._device = device_cls(vid=self._vid, pid=self._pid)
        else:
            self._device = hidapi.device()
            self._device.open(self._vid, self._pid)

    def _close_device(self) -> None:
        if self._device is not None:
            self._device.close()
            self._device = None

    def _write_report(self, report: bytes) -> None:
        # Report ID 0 prefix
        self._device.write(bytes([0x00]) + report)

    def _read_report(self) -> bytes:
        data = self._device.read(HID_REPORT_SIZE, READ_POLL_TIMEOUT_MS)
        return bytes(data) if data else b''


# =========================================================================
# Factory / discovery
# =========================================================================

def create_transport(backend: str = 'auto', vid: int = VENDOR_ID,
                     pid: int = PRODUCT_ID) -> HidTransport:
    """Create a transport for *backend* ('auto' prefers pyusb)."""
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend {backend!r} (choose from {', '.join(BACKENDS)})")
    if backend == 'hidapi':
        return HidApiTransport(vid, pid)
    return PyUsbTransport(vid, pid)


def find_devices(vid: int = VENDOR_ID, pid: int = PRODUCT_ID) -> list:
    """List attached devices.

    Returns:
        List of dicts with keys: vid, pid, serial, bus, address
    """
    devices = []
    for dev in usb.core.find(find_all=True, idVendor=vid, idProduct=pid) or []:
        serial_idx = getattr(dev, 'iSerialNumber', 0)
        try:
            serial = usb.util.get_string(dev, serial_idx) if serial_idx else ""
        except (ValueError, usb.core.USBError):
            serial = ""
        devices.append({
            'vid': vid,
            'pid': pid,
            'serial': serial or "",
            'bus': getattr(dev, 'bus', None),
            'address': getattr(dev, 'address', None),
        })
    return devices
