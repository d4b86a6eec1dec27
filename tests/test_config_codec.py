"""Tests for the configuration record codec (parse + build)."""

import json
import struct

import pytest
from conftest import make_blob, make_config

from arcticfox.config_parser import (
    ADVANCED_SETTINGS_SIZE,
    DECODED_SIZE,
    DEVICE_INFO_SIZE,
    GENERAL_SETTINGS_SIZE,
    PROFILE_SIZE,
    UI_SETTINGS_SIZE,
    parse_configuration,
)
from arcticfox.config_writer import build_configuration, scaled
from arcticfox.constants import CONFIGURATION_LENGTH, REVISION_LEGACY
from arcticfox.errors import MalformedResponseError, OutdatedFirmwareError, OutdatedToolError
from arcticfox.models import (
    Configuration,
    CurvePoint,
    PercentVoltage,
    SkinLine,
    TemperatureFactor,
)

PROFILES_OFFSET = DEVICE_INFO_SIZE
GENERAL_OFFSET = PROFILES_OFFSET + 8 * PROFILE_SIZE
UI_OFFSET = GENERAL_OFFSET + GENERAL_SETTINGS_SIZE
SKIN_LINES_OFFSET = UI_OFFSET + 6 + 24
ADVANCED_OFFSET = UI_OFFSET + UI_SETTINGS_SIZE


def _rich_config() -> Configuration:
    config = make_config()
    p = config.profiles[3]
    p.name = 'TI'
    p.material = 3
    p.is_temperature_dominant = True
    p.is_celsius = True
    p.is_resistance_locked = True
    p.is_enabled = True
    p.preheat_power = 55.5
    p.power = 30.0
    p.temperature = 230
    p.resistance = 0.12
    p.tcr = 350
    p.pi_regulator_enabled = True
    p.pi_regulator_p = 1200
    p.pi_regulator_i = 300

    config.general.selected_profile = 3
    config.general.smart_mode = 1

    ui = config.ui
    ui.clicks_vw = [1, 2, 3]
    ui.shortcuts['tc2'].in_menu = 7
    ui.classic_skin_vw_lines[0] = SkinLine(content=5, puff_display=True)
    ui.small_skin_tc_lines[1] = SkinLine(content=127)
    ui.brightness = 200
    ui.is_stealth_mode = True
    ui.puffs_count = 123456
    ui.puffs_time = 98765
    ui.year = 2024
    ui.second = 59

    adv = config.advanced
    adv.battery_model = 2
    adv.custom_batteries[1].name = 'VTC5'
    adv.custom_batteries[1].points[0] = PercentVoltage(percents=100, voltage=4.2)
    adv.custom_batteries[1].cutoff = 2.8
    adv.tfr_tables[7].name = 'SS'
    adv.tfr_tables[7].points[6] = TemperatureFactor(temperature=300, factor=1.1234)
    adv.power_curves[0].name = 'CURVE1'
    adv.power_curves[0].points[11] = CurvePoint(time=2.5, percent=150)
    adv.battery_voltage_offsets = [0.05, -0.05, 0.0, -1.28]
    adv.check_tcr = True
    adv.deep_sleep_delay = 10
    adv.power_limit = 60.0
    adv.internal_resistance = 0.013
    return config


# =========================================================================
# Layout
# =========================================================================

class TestLayout:

    def test_sub_record_sizes(self):
        assert DEVICE_INFO_SIZE + 8 * PROFILE_SIZE + GENERAL_SETTINGS_SIZE \
            + UI_SETTINGS_SIZE + ADVANCED_SETTINGS_SIZE == DECODED_SIZE == 1030

    def test_blob_length_and_reserved_tail(self):
        blob = build_configuration(_rich_config())
        assert len(blob) == CONFIGURATION_LENGTH
        assert blob[DECODED_SIZE:] == b'\x00' * (CONFIGURATION_LENGTH - DECODED_SIZE)

    def test_profile_flags_byte(self):
        config = make_config()
        config.profiles[0].material = 2
        config.profiles[0].is_celsius = True
        config.profiles[0].is_enabled = True
        blob = build_configuration(config)
        # name (8 bytes) then flags
        assert blob[PROFILES_OFFSET + 8] == 0xA2

    def test_device_info_header(self):
        blob = make_blob()
        assert blob[0] == 9
        assert blob[1:5] == b'E052'
        # max_device_power 75.0 W -> 750
        assert blob[9:11] == (750).to_bytes(2, 'little')

    def test_advanced_starts_after_ui(self):
        config = make_config()
        config.advanced.shunt_correction = 0x5A
        blob = build_configuration(config)
        assert blob[ADVANCED_OFFSET] == 0x5A


# =========================================================================
# Decode
# =========================================================================

class TestParseConfiguration:

    def test_device_info(self, config_blob):
        info = parse_configuration(config_blob).info
        assert info.settings_version == 9
        assert info.product_id == 'E052'
        assert info.max_device_power == 75.0
        assert info.firmware_build == 170603

    def test_skin_line_0x85(self, config_blob):
        blob = bytearray(config_blob)
        blob[SKIN_LINES_OFFSET] = 0x85
        ui = parse_configuration(bytes(blob)).ui
        assert ui.classic_skin_vw_lines[0] == SkinLine(content=5, puff_display=True)

    def test_profile_scaling(self, config_blob):
        profile = parse_configuration(config_blob).profiles[0]
        assert profile.name == 'SS316'
        assert profile.power == 40.5
        assert profile.is_enabled is True

    def test_short_blob(self, config_blob):
        with pytest.raises(MalformedResponseError, match="too short"):
            parse_configuration(config_blob[:CONFIGURATION_LENGTH - 1])

    def test_extra_bytes_ignored(self, config_blob):
        config = parse_configuration(config_blob + b'\xff' * 64)
        assert config.info.product_id == 'E052'

    def test_gate_outdated_tool(self):
        with pytest.raises(OutdatedToolError):
            parse_configuration(make_blob(settings_version=10))

    def test_gate_outdated_firmware(self):
        with pytest.raises(OutdatedFirmwareError):
            parse_configuration(make_blob(firmware_build=170000))

    def test_gate_uses_revision(self):
        config = parse_configuration(
            make_blob(settings_version=8, firmware_build=170401), REVISION_LEGACY,
        )
        assert config.info.settings_version == 8

    def test_selected_profile(self):
        config = parse_configuration(build_configuration(_rich_config()))
        assert config.selected_profile.name == 'TI'

    def test_hand_assembled_blob(self):
        # Literal offsets, independent of the writer
        blob = bytearray(CONFIGURATION_LENGTH)
        struct.pack_into('<B4sIHBBII', blob, 0, 9, b'E052', 106, 750, 1, 0, 170603, 170603)
        struct.pack_into(
            '<8sBBBBBHHHHHBBHH', blob, 21 + 2 * 29,
            b'Ti', 0xA2, 1, 2, 3, 4, 555, 300, 230, 150, 350, 1, 5, 1200, 300,
        )
        blob[253] = 2                                           # selected profile
        blob[256:259] = bytes([1, 2, 3])                        # VW clicks
        blob[310] = 200                                         # brightness
        struct.pack_into('<IIHBBBBB', blob, 336, 123456, 98765, 2024, 6, 15, 12, 30, 59)
        blob[351] = 0x5A                                        # shunt correction
        struct.pack_into('<4sHH', blob, 353, b'VTC5', 100, 420)
        struct.pack_into('<bbbbBBBBHB', blob, 1019, 5, -5, 0, -128, 1, 0, 2, 10, 600, 13)

        config = parse_configuration(bytes(blob))
        assert config.info.max_device_power == 75.0
        p = config.profiles[2]
        assert (p.name, p.material, p.is_celsius, p.is_enabled) == ('Ti', 2, True, True)
        assert p.is_temperature_dominant is False
        assert (p.preheat_type, p.selected_curve, p.preheat_time, p.preheat_delay) == (1, 2, 3, 4)
        assert (p.preheat_power, p.power, p.temperature) == (55.5, 30.0, 230)
        assert (p.resistance, p.tcr) == (0.15, 350)
        assert (p.pi_regulator_enabled, p.pi_regulator_range) == (True, 5)
        assert (p.pi_regulator_p, p.pi_regulator_i) == (1200, 300)
        assert config.selected_profile is config.profiles[2]

        ui = config.ui
        assert ui.clicks_vw == [1, 2, 3]
        assert ui.brightness == 200
        assert (ui.puffs_count, ui.puffs_time) == (123456, 98765)
        assert (ui.year, ui.month, ui.day, ui.hour, ui.minute, ui.second) == (
            2024, 6, 15, 12, 30, 59,
        )

        adv = config.advanced
        assert adv.shunt_correction == 0x5A
        assert adv.custom_batteries[0].name == 'VTC5'
        assert adv.custom_batteries[0].points[0] == PercentVoltage(percents=100, voltage=4.2)
        assert adv.battery_voltage_offsets == [0.05, -0.05, 0.0, -1.28]
        assert adv.check_tcr is True
        assert adv.usb_no_sleep is False
        assert (adv.deep_sleep_mode, adv.deep_sleep_delay) == (2, 10)
        assert adv.power_limit == 60.0
        assert adv.internal_resistance == 0.013

    def test_to_dict_is_json_serializable(self, config_blob):
        data = parse_configuration(config_blob).to_dict()
        text = json.dumps(data)
        assert '"product_id": "E052"' in text
        assert data['ui']['shortcuts']['vw0'] == {
            'in_standby': 0, 'in_edit_main': 0, 'in_selector': 0, 'in_menu': 0,
        }


# =========================================================================
# Encode
# =========================================================================

class TestBuildConfiguration:

    def test_decode_encode_decode(self):
        original = _rich_config()
        decoded = parse_configuration(build_configuration(original))
        assert decoded == original

    def test_encode_of_decoded_is_byte_identical(self):
        blob = build_configuration(_rich_config())
        assert build_configuration(parse_configuration(blob)) == blob

    def test_scaled_rounds(self):
        assert scaled(40.5, 10) == 405
        assert scaled(0.25, 10) == 2     # half to even
        assert scaled(4.199999, 100) == 420

    def test_high_byte_name_round_trips(self, config_blob):
        blob = bytearray(config_blob)
        blob[PROFILES_OFFSET:PROFILES_OFFSET + 8] = b'\xff' * 8
        config = parse_configuration(bytes(blob))
        assert len(config.profiles[0].name) == 8
        assert build_configuration(config) == bytes(blob)

    def test_name_too_long(self):
        config = make_config()
        config.profiles[0].name = 'NINECHARS'
        with pytest.raises(ValueError, match="exceeds"):
            build_configuration(config)

    def test_wrong_profile_count(self):
        config = make_config()
        config.profiles.pop()
        with pytest.raises(ValueError, match="Expected 8 profiles"):
            build_configuration(config)

    def test_wrong_skin_line_count(self):
        config = make_config()
        config.ui.circle_skin_tc_lines.append(SkinLine())
        with pytest.raises(ValueError, match="circle_skin_tc_lines"):
            build_configuration(config)

    def test_value_out_of_range(self):
        config = make_config()
        config.profiles[0].power = 7000.0   # 70000 > uint16
        with pytest.raises(ValueError):
            build_configuration(config)

    def test_material_overflow(self):
        config = make_config()
        config.profiles[0].material = 16
        with pytest.raises(ValueError, match="material"):
            build_configuration(config)
