"""Tests for the configuration version gate."""

import pytest

from arcticfox.compat import check_compatibility
from arcticfox.constants import REVISION_CURRENT, REVISION_LEGACY, get_revision
from arcticfox.errors import CompatibilityError, OutdatedFirmwareError, OutdatedToolError
from arcticfox.models import DeviceInfo


def _info(settings_version, firmware_build):
    return DeviceInfo(settings_version=settings_version, firmware_build=firmware_build)


class TestCheckCompatibility:

    def test_exact_window_passes(self):
        check_compatibility(_info(9, 170603), REVISION_CURRENT)

    def test_newer_build_passes(self):
        check_compatibility(_info(9, 180101), REVISION_CURRENT)

    def test_newer_schema_is_outdated_tool(self):
        with pytest.raises(OutdatedToolError) as exc:
            check_compatibility(_info(10, 170603), REVISION_CURRENT)
        assert exc.value.settings_version == 10
        assert exc.value.firmware_build == 170603

    def test_build_one_below_minimum(self):
        with pytest.raises(OutdatedFirmwareError):
            check_compatibility(_info(9, 170602), REVISION_CURRENT)

    def test_older_schema_is_outdated_firmware(self):
        with pytest.raises(OutdatedFirmwareError):
            check_compatibility(_info(8, 170603), REVISION_CURRENT)

    def test_newer_schema_wins_over_old_build(self):
        with pytest.raises(OutdatedToolError):
            check_compatibility(_info(10, 100), REVISION_CURRENT)

    def test_legacy_window(self):
        check_compatibility(_info(8, 170401), REVISION_LEGACY)
        with pytest.raises(OutdatedToolError):
            check_compatibility(_info(9, 170603), REVISION_LEGACY)

    def test_errors_share_base(self):
        assert issubclass(OutdatedToolError, CompatibilityError)
        assert issubclass(OutdatedFirmwareError, CompatibilityError)


class TestRevisions:

    def test_lookup(self):
        assert get_revision('current') is REVISION_CURRENT
        assert get_revision('legacy') is REVISION_LEGACY

    def test_unknown(self):
        with pytest.raises(KeyError, match="known: current, legacy"):
            get_revision('v3')

    def test_write_support(self):
        assert REVISION_CURRENT.supports_write_configuration
        assert not REVISION_LEGACY.supports_write_configuration
