"""Exception hierarchy for the ArcticFox driver."""


class ArcticFoxError(Exception):
    """Base for all driver errors."""


# -- Transport -------------------------------------------------------------

class TransportError(ArcticFoxError):
    """USB/HID transport failure.

    ``fatal`` errors tear the connection down and trigger a reconnect;
    non-fatal ones are only reported.
    """

    def __init__(self, message: str = "", fatal: bool = True):
        super().__init__(message)
        self.fatal = fatal


class TransportOpenError(TransportError):
    """Device not found, busy, or inaccessible."""


class TransportWriteError(TransportError):
    """Writing an outbound report failed."""


class ConnectionClosedError(TransportError):
    """The connection went away while a request was outstanding."""


# -- Requests --------------------------------------------------------------

class RequestError(ArcticFoxError):
    """A single request could not be completed."""


class RequestTimeoutError(RequestError):
    """No (or an incomplete) response arrived before the deadline."""


class DeviceBusyError(RequestError):
    """Another request is still outstanding."""


class MalformedResponseError(RequestError):
    """Response has an unexpected length or shape."""


class UnsupportedOperationError(RequestError):
    """Operation not available for the selected protocol revision."""


# -- Compatibility ---------------------------------------------------------

class CompatibilityError(RequestError):
    """Configuration schema / firmware outside the supported window."""

    def __init__(self, message: str, settings_version: int, firmware_build: int):
        super().__init__(message)
        self.settings_version = settings_version
        self.firmware_build = firmware_build


class OutdatedToolError(CompatibilityError):
    """Firmware uses a newer settings schema than this tool supports."""


class OutdatedFirmwareError(CompatibilityError):
    """Firmware build or settings schema is older than supported."""
