"""
Bit-packed flag bytes.

Every packed byte in the configuration is described once as a tuple of
``BitField`` entries; ``unpack_bits`` and ``pack_bits`` walk the same
description so decode and encode masks cannot drift apart.
"""

from dataclasses import dataclass
from typing import Dict, Sequence


@dataclass(frozen=True)
class BitField:
    """A named run of bits inside one integer.

    Attributes:
        name: Field name in the decoded mapping.
        shift: Position of the lowest bit.
        width: Number of bits (1 = boolean flag).
    """
    name: str
    shift: int
    width: int = 1

    @property
    def mask(self) -> int:
        return ((1 << self.width) - 1) << self.shift

    @property
    def is_flag(self) -> bool:
        return self.width == 1


def unpack_bits(value: int, fields: Sequence[BitField]) -> Dict[str, object]:
    """Split *value* into named fields (bool for 1-bit fields, int otherwise)."""
    out: Dict[str, object] = {}
    for f in fields:
        raw = (value & f.mask) >> f.shift
        out[f.name] = bool(raw) if f.is_flag else raw
    return out


def pack_bits(values: Dict[str, object], fields: Sequence[BitField]) -> int:
    """OR the named values back into one integer.

    Raises:
        ValueError: If a multi-bit value does not fit its width.
    """
    result = 0
    for f in fields:
        raw = int(values[f.name])
        if raw >> f.width:
            raise ValueError(f"{f.name}={raw} does not fit in {f.width} bit(s)")
        result |= raw << f.shift
    return result


# Profile flags byte
#   bits 0-3  material
#   bit 4     temperature dominant
#   bit 5     celsius
#   bit 6     resistance locked
#   bit 7     enabled
PROFILE_FLAGS = (
    BitField('material', 0, 4),
    BitField('is_temperature_dominant', 4),
    BitField('is_celsius', 5),
    BitField('is_resistance_locked', 6),
    BitField('is_enabled', 7),
)

# UI skin line byte
#   bits 0-6  line content index
#   bit 7     puff display mode
SKIN_LINE = (
    BitField('content', 0, 7),
    BitField('puff_display', 7),
)
