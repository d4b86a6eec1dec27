"""
ArcticFox device connection: the public driver API.

Observer pattern (as the rest of the package): register callbacks for
connect, close, error and state changes.  Reads return a
``concurrent.futures.Future``; an optional callback receives the future
once it resolves.

Usage::

    from arcticfox import ArcticFoxDevice

    dev = ArcticFoxDevice()
    dev.on_connect = lambda: print("connected")
    dev.on_error = lambda err: print(f"err: {err}")
    dev.connect()

    data = dev.read_monitoring_data().result(timeout=2)
    config = dev.read_configuration().result(timeout=2)
    dev.make_puff(2)
    dev.disconnect()

Each instance owns its own transport, timers and pending request, so
several devices (or tests) can coexist.
"""

import logging
import struct
import threading
from concurrent.futures import Future
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

from .command import build_command
from .conf import DriverSettings
from .config_writer import build_configuration
from .constants import (
    CONFIGURATION_LENGTH,
    MONITORING_DATA_LENGTH,
    SCREENSHOT_LENGTH,
    Command,
    ProtocolRevision,
    get_revision,
)
from .demux import ResponseDemultiplexer, ResponseKind
from .errors import (
    ConnectionClosedError,
    TransportError,
    TransportOpenError,
    TransportWriteError,
    UnsupportedOperationError,
)
from .models import Configuration
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle
from .transport import HidTransport, create_transport

log = logging.getLogger(__name__)

FutureCallback = Callable[[Future], None]


class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


class ArcticFoxDevice:
    """Connection manager and command API for one device.

    Observer callbacks:
        on_connect(): transport opened
        on_close(): an open connection went away
        on_error(error: Exception): transport or write failure
        on_state_changed(state: ConnectionState): every transition

    Args:
        settings: Timeouts, reconnect policy, revision and backend.
        transport_factory: Builds a fresh transport per connection
            attempt; defaults to ``create_transport(settings.backend)``.
        scheduler: Timer source for deadlines and reconnects.
    """

    def __init__(
        self,
        settings: Optional[DriverSettings] = None,
        transport_factory: Optional[Callable[[], HidTransport]] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.settings = settings or DriverSettings()
        self._transport_factory = transport_factory or (
            lambda: create_transport(
                self.settings.backend, self.settings.vid, self.settings.pid,
            )
        )
        self._scheduler = scheduler or ThreadingScheduler()
        self._demux = ResponseDemultiplexer(
            self._write, self._scheduler, get_revision(self.settings.revision),
        )

        self._lock = threading.Lock()
        self._transport: Optional[HidTransport] = None
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_timer: Optional[TimerHandle] = None
        # True until connect() and again after an explicit disconnect()
        self._stopped = True

        self.on_connect: Optional[Callable[[], None]] = None
        self.on_close: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.on_state_changed: Optional[Callable[[ConnectionState], None]] = None

    # -- Properties -------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def revision(self) -> ProtocolRevision:
        return self._demux.revision

    @property
    def busy(self) -> bool:
        """Whether a read request is outstanding."""
        return self._demux.busy

    # -- Observer helpers -------------------------------------------------

    def _notify_connect(self) -> None:
        if self.on_connect:
            self.on_connect()

    def _notify_close(self) -> None:
        if self.on_close:
            self.on_close()

    def _notify_error(self, error: Exception) -> None:
        if self.on_error:
            self.on_error(error)

    def _notify_state_changed(self, state: ConnectionState) -> None:
        if self.on_state_changed:
            self.on_state_changed(state)

    def _transition(self, state: ConnectionState) -> bool:
        """Set state (lock held by caller); True if it changed."""
        changed = self._state is not state
        self._state = state
        return changed

    # -- Lifecycle --------------------------------------------------------

    def connect(self) -> bool:
        """Open the transport.

        On failure the error is reported through ``on_error`` and a
        reconnect is scheduled (fixed delay, no retry limit).

        Returns:
            True if connected.
        """
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                return self._state is ConnectionState.CONNECTED
            self._cancel_reconnect()
            self._stopped = False
            self._transition(ConnectionState.CONNECTING)
        self._notify_state_changed(ConnectionState.CONNECTING)

        try:
            transport = self._open_transport()
        except TransportError as e:
            log.info("Connect failed: %s", e)
            with self._lock:
                self._transition(ConnectionState.DISCONNECTED)
            self._notify_state_changed(ConnectionState.DISCONNECTED)
            self._notify_error(e)
            self._schedule_reconnect()
            return False

        with self._lock:
            if self._stopped:
                # disconnect() ran while the transport was opening
                abandoned = transport
            else:
                abandoned = None
                self._transport = transport
                self._transition(ConnectionState.CONNECTED)
        if abandoned is not None:
            abandoned.close()
            return False

        log.info("Connected to %04x:%04x", self.settings.vid, self.settings.pid)
        self._notify_state_changed(ConnectionState.CONNECTED)
        self._notify_connect()
        return True

    def _open_transport(self) -> HidTransport:
        """Build and open a transport; any failure surfaces as TransportError."""
        try:
            transport = self._transport_factory()
            transport.set_handlers(self._handle_data, self._handle_error)
            transport.open()
        except TransportError:
            raise
        except Exception as e:
            # e.g. ImportError when the hidapi backend is not installed
            raise TransportOpenError(f"Cannot create transport: {e}") from e
        return transport

    def disconnect(self) -> None:
        """Close the connection and stop reconnecting.  Idempotent."""
        with self._lock:
            self._stopped = True
            self._cancel_reconnect()
        self._teardown(ConnectionClosedError("Disconnected by caller"))

    def _teardown(self, reason: Exception) -> None:
        with self._lock:
            transport, self._transport = self._transport, None
            was_connected = self._state is ConnectionState.CONNECTED
            changed = self._transition(ConnectionState.DISCONNECTED)

        self._demux.abort(ConnectionClosedError(str(reason)))
        if transport is not None:
            transport.close()
        if changed:
            self._notify_state_changed(ConnectionState.DISCONNECTED)
        if was_connected:
            log.info("Connection closed: %s", reason)
            self._notify_close()

    def _drop_connection(self, reason: Exception) -> None:
        """Tear down after a fatal transport error and retry later."""
        self._teardown(reason)
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        with self._lock:
            if (self._stopped or not self.settings.auto_reconnect
                    or self._reconnect_timer is not None):
                return
            delay = self.settings.reconnect_delay
            self._reconnect_timer = self._scheduler.call_later(delay, self._reconnect)
        log.debug("Reconnect scheduled in %.2fs", delay)

    def _cancel_reconnect(self) -> None:
        # lock held by caller
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _reconnect(self) -> None:
        with self._lock:
            self._reconnect_timer = None
            if self._stopped:
                return
        self.connect()

    # -- Transport notifications ------------------------------------------

    def _handle_data(self, chunk: bytes) -> None:
        self._demux.feed(chunk)

    def _handle_error(self, error: TransportError) -> None:
        log.warning("Transport error: %s", error)
        self._notify_error(error)
        if getattr(error, 'fatal', True):
            self._drop_connection(error)

    # -- Outbound ---------------------------------------------------------

    def _write(self, data: bytes) -> None:
        with self._lock:
            transport = self._transport if self.is_connected else None
        if transport is None:
            raise TransportWriteError("Not connected", fatal=False)
        transport.write(data)

    def _write_failed(self, error: TransportWriteError) -> None:
        self._notify_error(error)
        if error.fatal:
            self._drop_connection(error)

    def _send(self, *frames: bytes) -> bool:
        """Fire-and-forget write of one or more frames."""
        try:
            for frame in frames:
                self._write(frame)
        except TransportWriteError as e:
            log.warning("Send failed: %s", e)
            self._write_failed(e)
            return False
        return True

    def _request(self, kind: ResponseKind, frame: bytes,
                 callback: Optional[FutureCallback]) -> Future:
        future = self._demux.issue(kind, frame, self.settings.request_timeout, callback)
        if future.done():
            error = future.exception()
            if isinstance(error, TransportWriteError):
                self._write_failed(error)
        return future

    # -- Commands ---------------------------------------------------------

    def restart(self) -> bool:
        """Reboot the device."""
        return self._send(build_command(Command.RESTART))

    def make_puff(self, seconds: int) -> bool:
        """Fire the output for *seconds* seconds."""
        if seconds < 0:
            raise ValueError(f"Puff duration must be >= 0, got {seconds}")
        return self._send(build_command(Command.PUFF, int(seconds), 0))

    def set_datetime(self, when: Optional[datetime] = None) -> bool:
        """Set the device clock (defaults to now)."""
        if when is None:
            when = datetime.now()
        if not isinstance(when, datetime):
            raise TypeError(f"Expected datetime, got {type(when).__name__}")
        payload = struct.pack(
            '<HBBBBB',
            when.year, when.month, when.day, when.hour, when.minute, when.second,
        )
        return self._send(build_command(Command.SET_DATETIME), payload)

    def reset_dataflash(self) -> bool:
        """Reset settings to firmware defaults."""
        return self._send(build_command(Command.RESET_DATAFLASH))

    def write_configuration(self, config: Union[Configuration, bytes]) -> bool:
        """Upload a configuration record.

        Raises:
            UnsupportedOperationError: Revision has no configuration write.
            DeviceBusyError: A read is still streaming in.
        """
        if not self.revision.supports_write_configuration:
            raise UnsupportedOperationError(
                f"writeConfiguration is not available for revision {self.revision.name!r}"
            )
        blob = config if isinstance(config, (bytes, bytearray)) else build_configuration(config)
        if len(blob) != CONFIGURATION_LENGTH:
            raise ValueError(
                f"Configuration must be {CONFIGURATION_LENGTH} bytes, got {len(blob)}"
            )
        try:
            # busy check and both writes happen under the demux lock
            self._demux.write_when_idle(
                build_command(Command.WRITE_CONFIGURATION, 0, CONFIGURATION_LENGTH),
                bytes(blob),
            )
        except TransportWriteError as e:
            log.warning("Configuration write failed: %s", e)
            self._write_failed(e)
            return False
        return True

    # -- Reads ------------------------------------------------------------

    def read_monitoring_data(self, callback: Optional[FutureCallback] = None) -> Future:
        """Request one telemetry sample (Future[MonitoringData])."""
        frame = build_command(Command.READ_MONITORING_DATA, 0, MONITORING_DATA_LENGTH)
        return self._request(ResponseKind.MONITORING, frame, callback)

    def read_configuration(self, callback: Optional[FutureCallback] = None) -> Future:
        """Request the configuration record (Future[Configuration])."""
        frame = build_command(Command.READ_CONFIGURATION, 0, CONFIGURATION_LENGTH)
        return self._request(ResponseKind.CONFIGURATION, frame, callback)

    def screenshot(self, callback: Optional[FutureCallback] = None) -> Future:
        """Request the raw 1024-byte screen buffer (Future[bytes])."""
        frame = build_command(Command.SCREENSHOT, 0, SCREENSHOT_LENGTH)
        return self._request(ResponseKind.SCREENSHOT, frame, callback)

    # -- Context manager --------------------------------------------------

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *exc):
        self.disconnect()

    def __repr__(self) -> str:
        return (
            f"ArcticFoxDevice(state={self._state.value}, "
            f"revision={self.revision.name!r})"
        )
