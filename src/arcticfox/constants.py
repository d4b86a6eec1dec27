"""
Protocol constants for ArcticFox HID devices.

Values match the NFirmwareEditor HidConnector / ArcticFoxConfiguration
layout that the firmware implements.
"""

from dataclasses import dataclass
from enum import IntEnum

# =========================================================================
# USB identity
# =========================================================================

VENDOR_ID = 0x0416
PRODUCT_ID = 0x5020

# HID report size (interrupt endpoint max packet size)
HID_REPORT_SIZE = 64

# =========================================================================
# Command framing
# =========================================================================

PROTOCOL_TAG = 14
COMMAND_MARKER = b'HIDC'
COMMAND_HEADER_SIZE = 14  # opcode + tag + arg1 + arg2 + marker


class Command(IntEnum):
    """One-byte command opcodes."""
    READ_DATAFLASH = 0x35
    WRITE_DATAFLASH = 0x53
    RESET_DATAFLASH = 0x7C
    WRITE_DATA = 0xC3
    RESTART = 0xB4
    SCREENSHOT = 0xC1
    READ_MONITORING_DATA = 0x66
    PUFF = 0x44
    READ_CONFIGURATION = 0x60
    WRITE_CONFIGURATION = 0x61
    SET_DATETIME = 0x64
    SET_LOGO = 0xA5


# =========================================================================
# Payload sizes
# =========================================================================

DATAFLASH_LENGTH = 2048
CONFIGURATION_LENGTH = 1088
MONITORING_DATA_LENGTH = 64
SCREENSHOT_LENGTH = 0x400  # 1024

LOGO_OFFSET = 102400
LOGO_LENGTH = 1024

# Screen geometry (1 bit per pixel, 64 x 128 = 1024 bytes)
SCREEN_WIDTH = 64
SCREEN_HEIGHT = 128

DATETIME_PAYLOAD_SIZE = 7

# =========================================================================
# Timing defaults (seconds)
# =========================================================================

DEFAULT_REQUEST_TIMEOUT_S = 1.0
DEFAULT_RECONNECT_DELAY_S = 1.0

# Reader thread poll interval for one interrupt IN report (ms)
READ_POLL_TIMEOUT_MS = 100

# USB backends accepted by create_transport(); 'auto' prefers pyusb
BACKENDS = ('auto', 'pyusb', 'hidapi')


# =========================================================================
# Protocol revisions (compatibility window of the configuration schema)
# =========================================================================

@dataclass(frozen=True)
class ProtocolRevision:
    """Compatibility window for one configuration schema revision.

    Attributes:
        name: Revision key used in settings.
        settings_version: Settings schema version this tool understands.
        min_build: Oldest firmware build number accepted.
        supports_write_configuration: Whether writeConfiguration is
            available for this revision.
    """
    name: str
    settings_version: int
    min_build: int
    supports_write_configuration: bool = True


REVISION_LEGACY = ProtocolRevision(
    name='legacy',
    settings_version=8,
    min_build=170401,
    supports_write_configuration=False,
)

REVISION_CURRENT = ProtocolRevision(
    name='current',
    settings_version=9,
    min_build=170603,
)

PROTOCOL_REVISIONS = {
    REVISION_LEGACY.name: REVISION_LEGACY,
    REVISION_CURRENT.name: REVISION_CURRENT,
}

DEFAULT_REVISION = REVISION_CURRENT


def get_revision(name: str) -> ProtocolRevision:
    """Look up a protocol revision by name.

    Raises:
        KeyError: If the revision name is unknown.
    """
    try:
        return PROTOCOL_REVISIONS[name]
    except KeyError:
        known = ', '.join(sorted(PROTOCOL_REVISIONS))
        raise KeyError(f"Unknown protocol revision {name!r} (known: {known})") from None
