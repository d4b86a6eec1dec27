"""
Live telemetry frame (readMonitoringData answer).

Layout (NToolbox MonitoringData.cs), 64 bytes, little-endian::

    uint32  timestamp
    uint8   is_firing, is_charging, is_celsius
    uint8   battery 1..4 voltage   (0 = absent, else (raw + 275) / 100 V)
    uint16  power_set              (/10 W)
    uint16  temperature_set
    uint16  temperature
    uint16  output_voltage         (/100 V)
    uint16  output_current         (/100 A)
    uint16  resistance             (/1000 ohm)
    uint16  real_resistance        (/1000 ohm)
    uint8   board_temperature
    ...     reserved to 64 bytes
"""

from dataclasses import dataclass, field
from typing import List

from .binary_reader import BinaryReader
from .constants import MONITORING_DATA_LENGTH
from .errors import MalformedResponseError

BATTERY_SLOTS = 4
BATTERY_VOLTAGE_OFFSET = 275


@dataclass
class MonitoringData:
    """One decoded telemetry sample."""
    timestamp: int = 0
    is_firing: bool = False
    is_charging: bool = False
    is_celsius: bool = False
    battery_voltages: List[float] = field(default_factory=lambda: [0.0] * BATTERY_SLOTS)
    power_set: float = 0.0
    temperature_set: int = 0
    temperature: int = 0
    output_voltage: float = 0.0
    output_current: float = 0.0
    output_power: float = 0.0
    resistance: float = 0.0
    real_resistance: float = 0.0
    board_temperature: int = 0

    @property
    def battery_count(self) -> int:
        """Number of populated battery slots."""
        return sum(1 for v in self.battery_voltages if v)


def battery_voltage(raw: int) -> float:
    """Decode one battery voltage byte (0 means slot empty)."""
    return (raw + BATTERY_VOLTAGE_OFFSET) / 100 if raw else 0.0


def parse_monitoring_data(buf: bytes) -> MonitoringData:
    """Decode a 64-byte telemetry frame.

    Raises:
        MalformedResponseError: If *buf* is shorter than one frame.
    """
    if len(buf) < MONITORING_DATA_LENGTH:
        raise MalformedResponseError(
            f"Monitoring frame too short: {len(buf)} < {MONITORING_DATA_LENGTH}"
        )

    r = BinaryReader(buf)
    timestamp = r.read_uint32()
    is_firing = r.read_bool()
    is_charging = r.read_bool()
    is_celsius = r.read_bool()
    voltages = [battery_voltage(r.read_uint8()) for _ in range(BATTERY_SLOTS)]
    power_set = r.read_uint16() / 10
    temperature_set = r.read_uint16()
    temperature = r.read_uint16()
    output_voltage = r.read_uint16() / 100
    output_current = r.read_uint16() / 100
    resistance = r.read_uint16() / 1000
    real_resistance = r.read_uint16() / 1000
    board_temperature = r.read_uint8()

    return MonitoringData(
        timestamp=timestamp,
        is_firing=is_firing,
        is_charging=is_charging,
        is_celsius=is_celsius,
        battery_voltages=voltages,
        power_set=power_set,
        temperature_set=temperature_set,
        temperature=temperature,
        output_voltage=output_voltage,
        output_current=output_current,
        output_power=round(output_voltage * output_current, 2),
        resistance=resistance,
        real_resistance=real_resistance,
        board_temperature=board_temperature,
    )
