#!/usr/bin/env python3
"""
Parser for the ArcticFox configuration blob (readConfiguration answer).

Based on NFirmwareEditor ArcticFoxConfiguration.cs.  The blob is a fixed
1088-byte record read with one sequential cursor:

    DeviceInfo          21 bytes   (version gate runs right after)
    Profile x 8         29 bytes each
    GeneralSettings      3 bytes
    UiSettings          95 bytes
    AdvancedSettings   679 bytes
        shunt correction, battery model
        CustomBattery x 3            50 bytes each
        rtc mode, usb charge, reset counters
        TemperatureFactorTable x 8   32 bytes each
        puff cutoff
        PowerCurve x 8               32 bytes each
        battery voltage offsets x 4, sleep flags, power limit,
        internal resistance
    reserved            58 bytes   (ignored, zero on write)

Every sub-parser consumes exactly its fixed size.
"""

import logging
from typing import Callable, TypeVar

from .binary_reader import BinaryReader
from .bitfields import PROFILE_FLAGS, unpack_bits
from .compat import check_compatibility
from .constants import CONFIGURATION_LENGTH, DEFAULT_REVISION, ProtocolRevision
from .errors import MalformedResponseError
from .models import (
    BATTERY_OFFSET_COUNT,
    CLICK_COUNT,
    CUSTOM_BATTERY_COUNT,
    CUSTOM_BATTERY_POINTS,
    POWER_CURVE_COUNT,
    POWER_CURVE_POINTS,
    PROFILE_COUNT,
    SHORTCUT_MODES,
    TFR_TABLE_COUNT,
    TFR_TABLE_POINTS,
    AdvancedSettings,
    Configuration,
    CurvePoint,
    CustomBattery,
    DeviceInfo,
    GeneralSettings,
    PercentVoltage,
    PowerCurve,
    Profile,
    Shortcuts,
    SkinLine,
    TemperatureFactor,
    TemperatureFactorTable,
    UiSettings,
)

log = logging.getLogger(__name__)

T = TypeVar('T')

# Record sizes (bytes)
DEVICE_INFO_SIZE = 21
PROFILE_SIZE = 29
GENERAL_SETTINGS_SIZE = 3
UI_SETTINGS_SIZE = 95
CUSTOM_BATTERY_SIZE = 50
TFR_TABLE_SIZE = 32
POWER_CURVE_SIZE = 32
ADVANCED_SETTINGS_SIZE = 679
DECODED_SIZE = (
    DEVICE_INFO_SIZE
    + PROFILE_COUNT * PROFILE_SIZE
    + GENERAL_SETTINGS_SIZE
    + UI_SETTINGS_SIZE
    + ADVANCED_SETTINGS_SIZE
)  # 1030

# Text field widths
PRODUCT_ID_WIDTH = 4
PROFILE_NAME_WIDTH = 8
BATTERY_NAME_WIDTH = 4
TFR_NAME_WIDTH = 4
CURVE_NAME_WIDTH = 8

# Scale factors (wire integer = value * scale)
POWER_SCALE = 10
RESISTANCE_SCALE = 1000
VOLTAGE_SCALE = 100
FACTOR_SCALE = 10000
CURVE_TIME_SCALE = 10

# Skin line slots in wire order: (attribute, count)
SKIN_LINE_GROUPS = (
    ('classic_skin_vw_lines', 4),
    ('classic_skin_tc_lines', 4),
    ('circle_skin_vw_lines', 3),
    ('circle_skin_tc_lines', 3),
    ('foxy_skin_vw_lines', 3),
    ('foxy_skin_tc_lines', 3),
    ('small_skin_vw_lines', 2),
    ('small_skin_tc_lines', 2),
)

# Flat UI fields after the skin lines, in wire order: (attribute, kind)
UI_SCALAR_FIELDS = (
    ('brightness', 'u8'),
    ('dim_timeout', 'u8'),
    ('dim_timeout_locked', 'u8'),
    ('dim_timeout_charging', 'u8'),
    ('show_logo_delay', 'u8'),
    ('show_clock_delay', 'u8'),
    ('is_flipped', 'bool'),
    ('is_stealth_mode', 'bool'),
    ('wake_up_by_plus_minus', 'bool'),
    ('is_power_step_1w', 'bool'),
    ('is_temperature_step_1c2f', 'bool'),
    ('charge_screen_type', 'u8'),
    ('charge_extra_type', 'u8'),
    ('is_logo_enabled', 'bool'),
    ('is_classic_menu', 'bool'),
    ('clock_type', 'u8'),
    ('is_clock_on_main_screen', 'bool'),
    ('screensave_duration', 'u8'),
    ('puff_screen_delay', 'u8'),
    ('puffs_time_format', 'u8'),
    ('main_screen_skin', 'u8'),
    ('is_up_down_swapped', 'bool'),
    ('show_charging_in_stealth', 'bool'),
    ('show_screensaver_in_stealth', 'bool'),
    ('clock_on_click_in_stealth', 'bool'),
    ('five_clicks', 'u8'),
    ('puffs_count', 'u32'),
    ('puffs_time', 'u32'),
    ('year', 'u16'),
    ('month', 'u8'),
    ('day', 'u8'),
    ('hour', 'u8'),
    ('minute', 'u8'),
    ('second', 'u8'),
)

_READERS = {
    'u8': BinaryReader.read_uint8,
    'u16': BinaryReader.read_uint16,
    'u32': BinaryReader.read_uint32,
    'bool': BinaryReader.read_bool,
}


def _sized(r: BinaryReader, size: int, parse: Callable[[BinaryReader], T]) -> T:
    """Run *parse* and verify it consumed exactly *size* bytes."""
    start = r.pos
    if not r.has_bytes(size):
        raise MalformedResponseError(
            f"{parse.__name__}: need {size} bytes at offset {start}, "
            f"have {r.remaining()}"
        )
    result = parse(r)
    consumed = r.pos - start
    if consumed != size:
        raise RuntimeError(
            f"{parse.__name__} consumed {consumed} bytes, expected {size}"
        )
    return result


# =========================================================================
# Sub-record parsers
# =========================================================================

def parse_device_info(r: BinaryReader) -> DeviceInfo:
    return DeviceInfo(
        settings_version=r.read_uint8(),
        product_id=r.read_text(PRODUCT_ID_WIDTH),
        hardware_version=r.read_uint32(),
        max_device_power=r.read_uint16() / POWER_SCALE,
        number_of_batteries=r.read_uint8(),
        display_size=r.read_uint8(),
        firmware_version=r.read_uint32(),
        firmware_build=r.read_uint32(),
    )


def parse_profile(r: BinaryReader) -> Profile:
    name = r.read_text(PROFILE_NAME_WIDTH)
    flags = unpack_bits(r.read_uint8(), PROFILE_FLAGS)
    return Profile(
        name=name,
        material=flags['material'],
        is_temperature_dominant=flags['is_temperature_dominant'],
        is_celsius=flags['is_celsius'],
        is_resistance_locked=flags['is_resistance_locked'],
        is_enabled=flags['is_enabled'],
        preheat_type=r.read_uint8(),
        selected_curve=r.read_uint8(),
        preheat_time=r.read_uint8(),
        preheat_delay=r.read_uint8(),
        preheat_power=r.read_uint16() / POWER_SCALE,
        power=r.read_uint16() / POWER_SCALE,
        temperature=r.read_uint16(),
        resistance=r.read_uint16() / RESISTANCE_SCALE,
        tcr=r.read_uint16(),
        pi_regulator_enabled=r.read_bool(),
        pi_regulator_range=r.read_uint8(),
        pi_regulator_p=r.read_uint16(),
        pi_regulator_i=r.read_uint16(),
    )


def parse_general_settings(r: BinaryReader) -> GeneralSettings:
    return GeneralSettings(
        selected_profile=r.read_uint8(),
        smart_mode=r.read_uint8(),
        smart_range=r.read_uint8(),
    )


def parse_ui_settings(r: BinaryReader) -> UiSettings:
    ui = UiSettings()
    ui.clicks_vw = [r.read_uint8() for _ in range(CLICK_COUNT)]
    ui.clicks_tc = [r.read_uint8() for _ in range(CLICK_COUNT)]
    ui.shortcuts = {
        mode: Shortcuts(
            in_standby=r.read_uint8(),
            in_edit_main=r.read_uint8(),
            in_selector=r.read_uint8(),
            in_menu=r.read_uint8(),
        )
        for mode in SHORTCUT_MODES
    }
    for attr, count in SKIN_LINE_GROUPS:
        setattr(ui, attr, [SkinLine.from_byte(r.read_uint8()) for _ in range(count)])
    for attr, kind in UI_SCALAR_FIELDS:
        setattr(ui, attr, _READERS[kind](r))
    return ui


def parse_custom_battery(r: BinaryReader) -> CustomBattery:
    name = r.read_text(BATTERY_NAME_WIDTH)
    points = [
        PercentVoltage(
            percents=r.read_uint16(),
            voltage=r.read_uint16() / VOLTAGE_SCALE,
        )
        for _ in range(CUSTOM_BATTERY_POINTS)
    ]
    cutoff = r.read_uint16() / VOLTAGE_SCALE
    return CustomBattery(name=name, points=points, cutoff=cutoff)


def parse_tfr_table(r: BinaryReader) -> TemperatureFactorTable:
    name = r.read_text(TFR_NAME_WIDTH)
    points = [
        TemperatureFactor(
            temperature=r.read_uint16(),
            factor=r.read_uint16() / FACTOR_SCALE,
        )
        for _ in range(TFR_TABLE_POINTS)
    ]
    return TemperatureFactorTable(name=name, points=points)


def parse_power_curve(r: BinaryReader) -> PowerCurve:
    name = r.read_text(CURVE_NAME_WIDTH)
    points = [
        CurvePoint(
            time=r.read_uint8() / CURVE_TIME_SCALE,
            percent=r.read_uint8(),
        )
        for _ in range(POWER_CURVE_POINTS)
    ]
    return PowerCurve(name=name, points=points)


def parse_advanced_settings(r: BinaryReader) -> AdvancedSettings:
    adv = AdvancedSettings()
    adv.shunt_correction = r.read_uint8()
    adv.battery_model = r.read_uint8()
    adv.custom_batteries = [
        _sized(r, CUSTOM_BATTERY_SIZE, parse_custom_battery)
        for _ in range(CUSTOM_BATTERY_COUNT)
    ]
    adv.rtc_mode = r.read_uint8()
    adv.is_usb_charge = r.read_bool()
    adv.reset_counters_on_startup = r.read_bool()
    adv.tfr_tables = [
        _sized(r, TFR_TABLE_SIZE, parse_tfr_table)
        for _ in range(TFR_TABLE_COUNT)
    ]
    adv.puff_cutoff = r.read_uint8()
    adv.power_curves = [
        _sized(r, POWER_CURVE_SIZE, parse_power_curve)
        for _ in range(POWER_CURVE_COUNT)
    ]
    adv.battery_voltage_offsets = [
        r.read_int8() / VOLTAGE_SCALE for _ in range(BATTERY_OFFSET_COUNT)
    ]
    adv.check_tcr = r.read_bool()
    adv.usb_no_sleep = r.read_bool()
    adv.deep_sleep_mode = r.read_uint8()
    adv.deep_sleep_delay = r.read_uint8()
    adv.power_limit = r.read_uint16() / POWER_SCALE
    adv.internal_resistance = r.read_uint8() / RESISTANCE_SCALE
    return adv


# =========================================================================
# Public API
# =========================================================================

def parse_configuration(
    blob: bytes,
    revision: ProtocolRevision = DEFAULT_REVISION,
) -> Configuration:
    """Decode a configuration blob after passing the version gate.

    Args:
        blob: At least CONFIGURATION_LENGTH bytes; extra bytes are ignored.
        revision: Compatibility window to enforce.

    Raises:
        MalformedResponseError: Blob shorter than CONFIGURATION_LENGTH.
        OutdatedToolError / OutdatedFirmwareError: Version gate failures.
    """
    if len(blob) < CONFIGURATION_LENGTH:
        raise MalformedResponseError(
            f"Configuration too short: {len(blob)} < {CONFIGURATION_LENGTH}"
        )

    r = BinaryReader(bytes(blob[:CONFIGURATION_LENGTH]))
    info = _sized(r, DEVICE_INFO_SIZE, parse_device_info)
    check_compatibility(info, revision)

    config = Configuration(info=info)
    config.profiles = [
        _sized(r, PROFILE_SIZE, parse_profile) for _ in range(PROFILE_COUNT)
    ]
    config.general = _sized(r, GENERAL_SETTINGS_SIZE, parse_general_settings)
    config.ui = _sized(r, UI_SETTINGS_SIZE, parse_ui_settings)
    config.advanced = _sized(r, ADVANCED_SETTINGS_SIZE, parse_advanced_settings)

    log.debug(
        "Parsed configuration: product=%s fw=%d build=%d settings=%d "
        "(%d bytes decoded, %d reserved)",
        info.product_id, info.firmware_version, info.firmware_build,
        info.settings_version, r.pos, r.remaining(),
    )
    return config
