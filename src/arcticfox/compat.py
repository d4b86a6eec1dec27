"""Compatibility gate for configuration blobs."""

import logging

from .constants import ProtocolRevision
from .errors import OutdatedFirmwareError, OutdatedToolError
from .models import DeviceInfo

log = logging.getLogger(__name__)


def check_compatibility(info: DeviceInfo, revision: ProtocolRevision) -> None:
    """Reject configuration blobs outside the revision's window.

    Order matters: a newer schema is always reported as an outdated tool,
    even when the firmware build is also below the minimum.

    Raises:
        OutdatedToolError: settings_version is newer than supported.
        OutdatedFirmwareError: firmware build too old, or settings_version
            older than supported.
    """
    if info.settings_version > revision.settings_version:
        log.warning(
            "Settings version %d is newer than supported %d (%s)",
            info.settings_version, revision.settings_version, revision.name,
        )
        raise OutdatedToolError(
            f"Settings version {info.settings_version} is not supported "
            f"(max {revision.settings_version}); update this tool",
            info.settings_version, info.firmware_build,
        )
    if (info.firmware_build < revision.min_build
            or info.settings_version < revision.settings_version):
        log.warning(
            "Firmware build %d / settings version %d below %d / %d (%s)",
            info.firmware_build, info.settings_version,
            revision.min_build, revision.settings_version, revision.name,
        )
        raise OutdatedFirmwareError(
            f"Firmware build {info.firmware_build} (settings version "
            f"{info.settings_version}) is too old; need build >= "
            f"{revision.min_build} with settings version {revision.settings_version}",
            info.settings_version, info.firmware_build,
        )
