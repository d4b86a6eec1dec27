#!/usr/bin/env python3
"""
Writer for the ArcticFox configuration blob (writeConfiguration payload).

Exact inverse of config_parser: each sub-writer emits the fixed size its
parser consumes, and the result is zero padded to CONFIGURATION_LENGTH.
Scaled values are converted with round() so decoded values survive a
round trip unchanged.
"""

import logging
from typing import Callable, TypeVar

from .binary_reader import BinaryWriter
from .bitfields import PROFILE_FLAGS, pack_bits
from .config_parser import (
    ADVANCED_SETTINGS_SIZE,
    BATTERY_NAME_WIDTH,
    CURVE_NAME_WIDTH,
    CURVE_TIME_SCALE,
    CUSTOM_BATTERY_SIZE,
    DEVICE_INFO_SIZE,
    FACTOR_SCALE,
    GENERAL_SETTINGS_SIZE,
    POWER_CURVE_SIZE,
    POWER_SCALE,
    PRODUCT_ID_WIDTH,
    PROFILE_NAME_WIDTH,
    PROFILE_SIZE,
    RESISTANCE_SCALE,
    SKIN_LINE_GROUPS,
    TFR_NAME_WIDTH,
    TFR_TABLE_SIZE,
    UI_SCALAR_FIELDS,
    UI_SETTINGS_SIZE,
    VOLTAGE_SCALE,
)
from .constants import CONFIGURATION_LENGTH
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
    CustomBattery,
    DeviceInfo,
    GeneralSettings,
    PowerCurve,
    Profile,
    TemperatureFactorTable,
    UiSettings,
)

log = logging.getLogger(__name__)

T = TypeVar('T')

_WRITERS = {
    'u8': BinaryWriter.write_uint8,
    'u16': BinaryWriter.write_uint16,
    'u32': BinaryWriter.write_uint32,
    'bool': BinaryWriter.write_bool,
}


def scaled(value: float, scale: int) -> int:
    """Physical value -> wire integer."""
    return int(round(value * scale))


def _sized(w: BinaryWriter, size: int, write: Callable[[BinaryWriter, T], None], item: T) -> None:
    """Run *write* and verify it emitted exactly *size* bytes."""
    start = len(w)
    write(w, item)
    emitted = len(w) - start
    if emitted != size:
        raise RuntimeError(f"{write.__name__} wrote {emitted} bytes, expected {size}")


def _exactly(items: list, count: int, what: str) -> list:
    if len(items) != count:
        raise ValueError(f"Expected {count} {what}, got {len(items)}")
    return items


# =========================================================================
# Sub-record writers
# =========================================================================

def write_device_info(w: BinaryWriter, info: DeviceInfo) -> None:
    w.write_uint8(info.settings_version)
    w.write_text(info.product_id, PRODUCT_ID_WIDTH)
    w.write_uint32(info.hardware_version)
    w.write_uint16(scaled(info.max_device_power, POWER_SCALE))
    w.write_uint8(info.number_of_batteries)
    w.write_uint8(info.display_size)
    w.write_uint32(info.firmware_version)
    w.write_uint32(info.firmware_build)


def write_profile(w: BinaryWriter, p: Profile) -> None:
    w.write_text(p.name, PROFILE_NAME_WIDTH)
    w.write_uint8(pack_bits({
        'material': p.material,
        'is_temperature_dominant': p.is_temperature_dominant,
        'is_celsius': p.is_celsius,
        'is_resistance_locked': p.is_resistance_locked,
        'is_enabled': p.is_enabled,
    }, PROFILE_FLAGS))
    w.write_uint8(p.preheat_type)
    w.write_uint8(p.selected_curve)
    w.write_uint8(p.preheat_time)
    w.write_uint8(p.preheat_delay)
    w.write_uint16(scaled(p.preheat_power, POWER_SCALE))
    w.write_uint16(scaled(p.power, POWER_SCALE))
    w.write_uint16(p.temperature)
    w.write_uint16(scaled(p.resistance, RESISTANCE_SCALE))
    w.write_uint16(p.tcr)
    w.write_bool(p.pi_regulator_enabled)
    w.write_uint8(p.pi_regulator_range)
    w.write_uint16(p.pi_regulator_p)
    w.write_uint16(p.pi_regulator_i)


def write_general_settings(w: BinaryWriter, g: GeneralSettings) -> None:
    w.write_uint8(g.selected_profile)
    w.write_uint8(g.smart_mode)
    w.write_uint8(g.smart_range)


def write_ui_settings(w: BinaryWriter, ui: UiSettings) -> None:
    for clicks in (ui.clicks_vw, ui.clicks_tc):
        for value in _exactly(clicks, CLICK_COUNT, 'click actions'):
            w.write_uint8(value)
    for mode in SHORTCUT_MODES:
        s = ui.shortcuts[mode]
        w.write_uint8(s.in_standby)
        w.write_uint8(s.in_edit_main)
        w.write_uint8(s.in_selector)
        w.write_uint8(s.in_menu)
    for attr, count in SKIN_LINE_GROUPS:
        for line in _exactly(getattr(ui, attr), count, attr):
            w.write_uint8(line.to_byte())
    for attr, kind in UI_SCALAR_FIELDS:
        _WRITERS[kind](w, getattr(ui, attr))


def write_custom_battery(w: BinaryWriter, b: CustomBattery) -> None:
    w.write_text(b.name, BATTERY_NAME_WIDTH)
    for pt in _exactly(b.points, CUSTOM_BATTERY_POINTS, 'battery points'):
        w.write_uint16(pt.percents)
        w.write_uint16(scaled(pt.voltage, VOLTAGE_SCALE))
    w.write_uint16(scaled(b.cutoff, VOLTAGE_SCALE))


def write_tfr_table(w: BinaryWriter, t: TemperatureFactorTable) -> None:
    w.write_text(t.name, TFR_NAME_WIDTH)
    for pt in _exactly(t.points, TFR_TABLE_POINTS, 'TFR points'):
        w.write_uint16(pt.temperature)
        w.write_uint16(scaled(pt.factor, FACTOR_SCALE))


def write_power_curve(w: BinaryWriter, c: PowerCurve) -> None:
    w.write_text(c.name, CURVE_NAME_WIDTH)
    for pt in _exactly(c.points, POWER_CURVE_POINTS, 'curve points'):
        w.write_uint8(scaled(pt.time, CURVE_TIME_SCALE))
        w.write_uint8(pt.percent)


def write_advanced_settings(w: BinaryWriter, adv: AdvancedSettings) -> None:
    w.write_uint8(adv.shunt_correction)
    w.write_uint8(adv.battery_model)
    for b in _exactly(adv.custom_batteries, CUSTOM_BATTERY_COUNT, 'custom batteries'):
        _sized(w, CUSTOM_BATTERY_SIZE, write_custom_battery, b)
    w.write_uint8(adv.rtc_mode)
    w.write_bool(adv.is_usb_charge)
    w.write_bool(adv.reset_counters_on_startup)
    for t in _exactly(adv.tfr_tables, TFR_TABLE_COUNT, 'TFR tables'):
        _sized(w, TFR_TABLE_SIZE, write_tfr_table, t)
    w.write_uint8(adv.puff_cutoff)
    for c in _exactly(adv.power_curves, POWER_CURVE_COUNT, 'power curves'):
        _sized(w, POWER_CURVE_SIZE, write_power_curve, c)
    for offset in _exactly(adv.battery_voltage_offsets, BATTERY_OFFSET_COUNT, 'battery offsets'):
        w.write_int8(scaled(offset, VOLTAGE_SCALE))
    w.write_bool(adv.check_tcr)
    w.write_bool(adv.usb_no_sleep)
    w.write_uint8(adv.deep_sleep_mode)
    w.write_uint8(adv.deep_sleep_delay)
    w.write_uint16(scaled(adv.power_limit, POWER_SCALE))
    w.write_uint8(scaled(adv.internal_resistance, RESISTANCE_SCALE))


# =========================================================================
# Public API
# =========================================================================

def build_configuration(config: Configuration) -> bytes:
    """Encode *config* into a CONFIGURATION_LENGTH-byte blob.

    Raises:
        ValueError: On wrong table sizes, over-long names, or values that
            do not fit their wire field.
    """
    w = BinaryWriter()
    _sized(w, DEVICE_INFO_SIZE, write_device_info, config.info)
    for p in _exactly(config.profiles, PROFILE_COUNT, 'profiles'):
        _sized(w, PROFILE_SIZE, write_profile, p)
    _sized(w, GENERAL_SETTINGS_SIZE, write_general_settings, config.general)
    _sized(w, UI_SETTINGS_SIZE, write_ui_settings, config.ui)
    _sized(w, ADVANCED_SETTINGS_SIZE, write_advanced_settings, config.advanced)

    blob = w.getvalue()
    if len(blob) > CONFIGURATION_LENGTH:
        raise ValueError(
            f"Encoded configuration is {len(blob)} bytes (max {CONFIGURATION_LENGTH})"
        )
    log.debug("Built configuration: %d bytes + %d padding",
              len(blob), CONFIGURATION_LENGTH - len(blob))
    return blob.ljust(CONFIGURATION_LENGTH, b'\x00')
