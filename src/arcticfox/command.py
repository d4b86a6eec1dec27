"""
Outbound command frames.

Frame layout (NFirmwareEditor HidConnector.CreateCommand)::

    [opcode, 14,
     arg1 (uint32 LE),
     arg2 (uint32 LE),
     'H', 'I', 'D', 'C',
     checksum suffix]

The checksum suffix is variable length: sum every preceding byte, then
emit the low byte of the running sum and shift it right by 8 until the
sum reaches zero.  The firmware validates it bit-for-bit.
"""

import struct
from typing import Tuple

from .constants import COMMAND_HEADER_SIZE, COMMAND_MARKER, PROTOCOL_TAG
from .errors import MalformedResponseError

_HEADER = struct.Struct('<BBII4s')


def checksum_suffix(data: bytes) -> bytes:
    """Running-sum checksum bytes for *data* (0 to ~4 bytes)."""
    total = sum(data)
    suffix = bytearray()
    while total > 0:
        suffix.append(total & 0xFF)
        total >>= 8
    return bytes(suffix)


def build_command(opcode: int, arg1: int = 0, arg2: int = 0) -> bytes:
    """Build one command frame.

    Args:
        opcode: One-byte command code (see ``constants.Command``).
        arg1: First argument, truncated to 32 bits.
        arg2: Second argument, truncated to 32 bits.
    """
    header = _HEADER.pack(
        opcode & 0xFF,
        PROTOCOL_TAG,
        arg1 & 0xFFFFFFFF,
        arg2 & 0xFFFFFFFF,
        COMMAND_MARKER,
    )
    return header + checksum_suffix(header)


def parse_command(frame: bytes) -> Tuple[int, int, int]:
    """Decode a frame built by :func:`build_command`.

    Returns:
        (opcode, arg1, arg2)

    Raises:
        MalformedResponseError: On bad length, tag, marker or checksum.
    """
    if len(frame) < COMMAND_HEADER_SIZE:
        raise MalformedResponseError(
            f"Command frame too short: {len(frame)} bytes"
        )
    header = bytes(frame[:COMMAND_HEADER_SIZE])
    opcode, tag, arg1, arg2, marker = _HEADER.unpack(header)
    if tag != PROTOCOL_TAG:
        raise MalformedResponseError(f"Unexpected protocol tag {tag}")
    if marker != COMMAND_MARKER:
        raise MalformedResponseError(f"Unexpected command marker {marker!r}")
    if bytes(frame[COMMAND_HEADER_SIZE:]) != checksum_suffix(header):
        raise MalformedResponseError("Command checksum mismatch")
    return opcode, arg1, arg2
