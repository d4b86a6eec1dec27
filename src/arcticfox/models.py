"""
Configuration record data classes.

One composite ``Configuration`` holds every sub-record as a named field;
the parser fills them in order and the writer walks them back out.
Physical quantities are stored already scaled (watts, ohms, volts).
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from .bitfields import SKIN_LINE, pack_bits, unpack_bits

PROFILE_COUNT = 8
CUSTOM_BATTERY_COUNT = 3
CUSTOM_BATTERY_POINTS = 11
TFR_TABLE_COUNT = 8
TFR_TABLE_POINTS = 7
POWER_CURVE_COUNT = 8
POWER_CURVE_POINTS = 12
BATTERY_OFFSET_COUNT = 4
CLICK_COUNT = 3
SHORTCUT_MODES = ('vw0', 'vw1', 'vw2', 'tc0', 'tc1', 'tc2')


# =========================================================================
# Device info header
# =========================================================================

@dataclass
class DeviceInfo:
    """Device identity header (first 21 bytes of the blob)."""
    settings_version: int = 0
    product_id: str = ""
    hardware_version: int = 0
    max_device_power: float = 0.0   # watts
    number_of_batteries: int = 0
    display_size: int = 0
    firmware_version: int = 0
    firmware_build: int = 0


# =========================================================================
# Profiles
# =========================================================================

@dataclass
class Profile:
    """One user-selectable power/temperature profile."""
    name: str = ""
    material: int = 0
    is_temperature_dominant: bool = False
    is_celsius: bool = False
    is_resistance_locked: bool = False
    is_enabled: bool = False
    preheat_type: int = 0
    selected_curve: int = 0
    preheat_time: int = 0
    preheat_delay: int = 0
    preheat_power: float = 0.0      # watts
    power: float = 0.0              # watts
    temperature: int = 0
    resistance: float = 0.0         # ohms
    tcr: int = 0
    pi_regulator_enabled: bool = False
    pi_regulator_range: int = 0
    pi_regulator_p: int = 0
    pi_regulator_i: int = 0


# =========================================================================
# General / UI settings
# =========================================================================

@dataclass
class GeneralSettings:
    selected_profile: int = 0
    smart_mode: int = 0
    smart_range: int = 0


@dataclass
class SkinLine:
    """One main-screen line slot.

    Wire byte: bits 0-6 = content index, bit 7 = puff display mode.
    """
    content: int = 0
    puff_display: bool = False

    @classmethod
    def from_byte(cls, value: int) -> 'SkinLine':
        return cls(**unpack_bits(value, SKIN_LINE))

    def to_byte(self) -> int:
        return pack_bits(
            {'content': self.content, 'puff_display': self.puff_display},
            SKIN_LINE,
        )


@dataclass
class Shortcuts:
    """Shortcut actions for one mode, per screen context."""
    in_standby: int = 0
    in_edit_main: int = 0
    in_selector: int = 0
    in_menu: int = 0


def _skin_lines(n: int) -> List[SkinLine]:
    return [SkinLine() for _ in range(n)]


@dataclass
class UiSettings:
    """Display, input and counter settings (95 bytes on the wire)."""
    clicks_vw: List[int] = field(default_factory=lambda: [0] * CLICK_COUNT)
    clicks_tc: List[int] = field(default_factory=lambda: [0] * CLICK_COUNT)
    # keyed by SHORTCUT_MODES, in wire order
    shortcuts: Dict[str, Shortcuts] = field(
        default_factory=lambda: {m: Shortcuts() for m in SHORTCUT_MODES}
    )

    classic_skin_vw_lines: List[SkinLine] = field(default_factory=lambda: _skin_lines(4))
    classic_skin_tc_lines: List[SkinLine] = field(default_factory=lambda: _skin_lines(4))
    circle_skin_vw_lines: List[SkinLine] = field(default_factory=lambda: _skin_lines(3))
    circle_skin_tc_lines: List[SkinLine] = field(default_factory=lambda: _skin_lines(3))
    foxy_skin_vw_lines: List[SkinLine] = field(default_factory=lambda: _skin_lines(3))
    foxy_skin_tc_lines: List[SkinLine] = field(default_factory=lambda: _skin_lines(3))
    small_skin_vw_lines: List[SkinLine] = field(default_factory=lambda: _skin_lines(2))
    small_skin_tc_lines: List[SkinLine] = field(default_factory=lambda: _skin_lines(2))

    brightness: int = 0
    dim_timeout: int = 0
    dim_timeout_locked: int = 0
    dim_timeout_charging: int = 0
    show_logo_delay: int = 0
    show_clock_delay: int = 0

    is_flipped: bool = False
    is_stealth_mode: bool = False
    wake_up_by_plus_minus: bool = False
    is_power_step_1w: bool = False
    is_temperature_step_1c2f: bool = False

    charge_screen_type: int = 0
    charge_extra_type: int = 0

    is_logo_enabled: bool = False
    is_classic_menu: bool = False

    clock_type: int = 0
    is_clock_on_main_screen: bool = False

    screensave_duration: int = 0
    puff_screen_delay: int = 0
    puffs_time_format: int = 0

    main_screen_skin: int = 0
    is_up_down_swapped: bool = False
    show_charging_in_stealth: bool = False
    show_screensaver_in_stealth: bool = False
    clock_on_click_in_stealth: bool = False
    five_clicks: int = 0

    puffs_count: int = 0
    puffs_time: int = 0

    year: int = 0
    month: int = 0
    day: int = 0
    hour: int = 0
    minute: int = 0
    second: int = 0


# =========================================================================
# Advanced settings and nested tables
# =========================================================================

@dataclass
class PercentVoltage:
    percents: int = 0
    voltage: float = 0.0    # volts


@dataclass
class CustomBattery:
    """User-defined discharge curve (50 bytes)."""
    name: str = ""
    points: List[PercentVoltage] = field(
        default_factory=lambda: [PercentVoltage() for _ in range(CUSTOM_BATTERY_POINTS)]
    )
    cutoff: float = 0.0     # volts


@dataclass
class TemperatureFactor:
    temperature: int = 0
    factor: float = 0.0


@dataclass
class TemperatureFactorTable:
    """Resistance-vs-temperature factor table (32 bytes)."""
    name: str = ""
    points: List[TemperatureFactor] = field(
        default_factory=lambda: [TemperatureFactor() for _ in range(TFR_TABLE_POINTS)]
    )


@dataclass
class CurvePoint:
    time: float = 0.0       # seconds
    percent: int = 0


@dataclass
class PowerCurve:
    """Power-over-time curve (32 bytes)."""
    name: str = ""
    points: List[CurvePoint] = field(
        default_factory=lambda: [CurvePoint() for _ in range(POWER_CURVE_POINTS)]
    )


@dataclass
class AdvancedSettings:
    """Tuning fields plus the 3 + 8 + 8 nested tables (679 bytes)."""
    shunt_correction: int = 0
    battery_model: int = 0
    custom_batteries: List[CustomBattery] = field(
        default_factory=lambda: [CustomBattery() for _ in range(CUSTOM_BATTERY_COUNT)]
    )
    rtc_mode: int = 0
    is_usb_charge: bool = False
    reset_counters_on_startup: bool = False
    tfr_tables: List[TemperatureFactorTable] = field(
        default_factory=lambda: [TemperatureFactorTable() for _ in range(TFR_TABLE_COUNT)]
    )
    puff_cutoff: int = 0
    power_curves: List[PowerCurve] = field(
        default_factory=lambda: [PowerCurve() for _ in range(POWER_CURVE_COUNT)]
    )
    battery_voltage_offsets: List[float] = field(
        default_factory=lambda: [0.0] * BATTERY_OFFSET_COUNT
    )
    check_tcr: bool = False
    usb_no_sleep: bool = False
    deep_sleep_mode: int = 0
    deep_sleep_delay: int = 0
    power_limit: float = 0.0        # watts
    internal_resistance: float = 0.0  # ohms


# =========================================================================
# Composite record
# =========================================================================

@dataclass
class Configuration:
    """Complete decoded configuration blob."""
    info: DeviceInfo = field(default_factory=DeviceInfo)
    profiles: List[Profile] = field(
        default_factory=lambda: [Profile() for _ in range(PROFILE_COUNT)]
    )
    general: GeneralSettings = field(default_factory=GeneralSettings)
    ui: UiSettings = field(default_factory=UiSettings)
    advanced: AdvancedSettings = field(default_factory=AdvancedSettings)

    @property
    def selected_profile(self) -> Profile:
        return self.profiles[self.general.selected_profile % PROFILE_COUNT]

    def to_dict(self) -> Dict[str, Any]:
        """Plain nested dict (JSON serializable)."""
        return asdict(self)
