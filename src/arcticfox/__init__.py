"""
ArcticFox HID - USB driver for ArcticFox firmware devices

Talks to vape mods running ArcticFox-style firmware (VID 0x0416,
PID 0x5020) over 64-byte HID reports.

Features:
- Live telemetry (battery, output, coil and board temperature)
- Configuration record read/write (profiles, UI, batteries, curves)
- Firmware compatibility check against the settings schema
- Screenshot capture, clock sync, restart, puff

Usage:
    # As a library
    from arcticfox import ArcticFoxDevice
    dev = ArcticFoxDevice()
    dev.connect()
    config = dev.read_configuration().result(timeout=2)

    # Command line
    arcticfox monitor     # Live telemetry
    arcticfox config      # Dump configuration as JSON
"""

from arcticfox.__version__ import __version__

# Core exports
from arcticfox.conf import DriverSettings
from arcticfox.constants import (
    PRODUCT_ID,
    REVISION_CURRENT,
    REVISION_LEGACY,
    VENDOR_ID,
    Command,
    ProtocolRevision,
)
from arcticfox.device import ArcticFoxDevice, ConnectionState
from arcticfox.errors import (
    ArcticFoxError,
    CompatibilityError,
    ConnectionClosedError,
    DeviceBusyError,
    MalformedResponseError,
    OutdatedFirmwareError,
    OutdatedToolError,
    RequestError,
    RequestTimeoutError,
    TransportError,
    TransportOpenError,
    TransportWriteError,
    UnsupportedOperationError,
)

# Codecs
from arcticfox.command import build_command
from arcticfox.config_parser import parse_configuration
from arcticfox.config_writer import build_configuration
from arcticfox.models import Configuration
from arcticfox.monitoring import MonitoringData, parse_monitoring_data

__all__ = [
    # Version
    "__version__",
    # Core
    "ArcticFoxDevice",
    "ConnectionState",
    "DriverSettings",
    "Command",
    "ProtocolRevision",
    "REVISION_CURRENT",
    "REVISION_LEGACY",
    "VENDOR_ID",
    "PRODUCT_ID",
    # Codecs
    "build_command",
    "parse_configuration",
    "build_configuration",
    "parse_monitoring_data",
    "Configuration",
    "MonitoringData",
    # Errors
    "ArcticFoxError",
    "TransportError",
    "TransportOpenError",
    "TransportWriteError",
    "ConnectionClosedError",
    "RequestError",
    "RequestTimeoutError",
    "DeviceBusyError",
    "MalformedResponseError",
    "UnsupportedOperationError",
    "CompatibilityError",
    "OutdatedToolError",
    "OutdatedFirmwareError",
]
