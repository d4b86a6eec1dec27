"""
Sequential binary reader/writer for the ArcticFox wire formats.

All multi-byte fields are little-endian.  Text fields are fixed-width
Latin-1 (one byte per character), null padded.
"""

import struct


class BinaryReader:
    """Sequential little-endian reader over a bytes buffer."""

    __slots__ = ('data', 'pos')

    def __init__(self, data: bytes, pos: int = 0):
        self.data = data
        self.pos = pos

    def _unpack(self, fmt: str, size: int):
        if self.pos + size > len(self.data):
            raise IndexError("End of data")
        val = struct.unpack_from(fmt, self.data, self.pos)[0]
        self.pos += size
        return val

    def read_uint8(self) -> int:
        return self._unpack('<B', 1)

    def read_int8(self) -> int:
        return self._unpack('<b', 1)

    def read_uint16(self) -> int:
        return self._unpack('<H', 2)

    def read_uint32(self) -> int:
        return self._unpack('<I', 4)

    def read_bool(self) -> bool:
        return self.read_uint8() != 0

    def read_bytes(self, n: int) -> bytes:
        """Read exactly n bytes and advance position."""
        if self.pos + n > len(self.data):
            raise IndexError("End of data")
        chunk = bytes(self.data[self.pos:self.pos + n])
        self.pos += n
        return chunk

    def read_text(self, width: int) -> str:
        """Read a fixed-width text field, trimming trailing nulls.

        Latin-1 maps every byte to one character, so any field decodes
        and re-encodes unchanged.
        """
        raw = self.read_bytes(width).rstrip(b'\x00')
        return raw.decode('latin-1')

    def remaining(self) -> int:
        """Bytes remaining from current position."""
        return len(self.data) - self.pos

    def has_bytes(self, n: int) -> bool:
        """Check if at least n bytes remain."""
        return self.pos + n <= len(self.data)

    def skip(self, n: int) -> None:
        """Skip n bytes forward."""
        self.pos += n


class BinaryWriter:
    """Append-only little-endian writer, the inverse of BinaryReader."""

    __slots__ = ('buf',)

    def __init__(self):
        self.buf = bytearray()

    def _pack(self, fmt: str, value: int) -> None:
        try:
            self.buf += struct.pack(fmt, value)
        except struct.error as e:
            raise ValueError(f"{value!r} does not fit {fmt!r}: {e}") from e

    def write_uint8(self, value: int) -> None:
        self._pack('<B', value)

    def write_int8(self, value: int) -> None:
        self._pack('<b', value)

    def write_uint16(self, value: int) -> None:
        self._pack('<H', value)

    def write_uint32(self, value: int) -> None:
        self._pack('<I', value)

    def write_bool(self, value: bool) -> None:
        self.write_uint8(1 if value else 0)

    def write_bytes(self, data: bytes) -> None:
        self.buf += data

    def write_text(self, text: str, width: int) -> None:
        """Write *text* as Latin-1, null padded to *width*.

        Raises:
            ValueError: If the text is not Latin-1 or is longer than *width*.
        """
        try:
            encoded = text.encode('latin-1')
        except UnicodeEncodeError as e:
            raise ValueError(f"Text {text!r} is not encodable: {e.reason}") from e
        if len(encoded) > width:
            raise ValueError(f"Text {text!r} exceeds field width {width}")
        self.buf += encoded.ljust(width, b'\x00')

    def getvalue(self) -> bytes:
        return bytes(self.buf)

    def __len__(self) -> int:
        return len(self.buf)
