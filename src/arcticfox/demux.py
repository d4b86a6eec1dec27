"""
Request/response correlation for the ArcticFox HID protocol.

The protocol carries no request identifiers, so only one request may be
outstanding.  A second ``issue()`` while one is pending is rejected with
``DeviceBusyError`` rather than queued.

Inbound reports are fed in arrival order.  Monitoring answers are a
single report; configuration and screenshot answers are reassembled
until their fixed length is reached.  Every request resolves its
``Future`` exactly once: result, decode error, write error, timeout, or
abort.
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .config_parser import parse_configuration
from .constants import (
    CONFIGURATION_LENGTH,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_REVISION,
    MONITORING_DATA_LENGTH,
    SCREENSHOT_LENGTH,
    ProtocolRevision,
)
from .errors import (
    DeviceBusyError,
    RequestTimeoutError,
    TransportError,
    TransportWriteError,
)
from .monitoring import parse_monitoring_data
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle

log = logging.getLogger(__name__)


class ResponseKind(Enum):
    """Expected answer type of the outstanding request."""
    MONITORING = 'monitoring'
    CONFIGURATION = 'configuration'
    SCREENSHOT = 'screenshot'


EXPECTED_LENGTH = {
    ResponseKind.MONITORING: MONITORING_DATA_LENGTH,
    ResponseKind.CONFIGURATION: CONFIGURATION_LENGTH,
    ResponseKind.SCREENSHOT: SCREENSHOT_LENGTH,
}


@dataclass
class PendingRequest:
    """The single outstanding request and its reassembly buffer."""
    kind: ResponseKind
    future: Future
    timeout: float
    buffer: bytearray = field(default_factory=bytearray)
    timer: Optional[TimerHandle] = None

    @property
    def expected_length(self) -> int:
        return EXPECTED_LENGTH[self.kind]


def _new_future(callback: Optional[Callable[[Future], None]] = None) -> Future:
    future: Future = Future()
    # RUNNING futures cannot be cancelled by callers
    future.set_running_or_notify_cancel()
    if callback is not None:
        future.add_done_callback(callback)
    return future


class ResponseDemultiplexer:
    """Single-flight request tracker and chunk reassembler.

    Args:
        write: Sends one outbound frame; raises TransportError on failure.
        scheduler: Deadline timer source.
        revision: Compatibility window for configuration answers.
    """

    def __init__(
        self,
        write: Callable[[bytes], Any],
        scheduler: Optional[Scheduler] = None,
        revision: ProtocolRevision = DEFAULT_REVISION,
    ):
        self._write = write
        self._scheduler = scheduler or ThreadingScheduler()
        self.revision = revision
        self._lock = threading.Lock()
        self._pending: Optional[PendingRequest] = None

    @property
    def busy(self) -> bool:
        """Whether a request is outstanding."""
        with self._lock:
            return self._pending is not None

    @property
    def pending_kind(self) -> Optional[ResponseKind]:
        with self._lock:
            return self._pending.kind if self._pending else None

    # -- Issue ----------------------------------------------------------

    def issue(
        self,
        kind: ResponseKind,
        frame: bytes,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
        callback: Optional[Callable[[Future], None]] = None,
    ) -> Future:
        """Send *frame* and track the answer.

        The returned future is already resolved when the request is
        rejected (busy) or the write fails.
        """
        future = _new_future(callback)

        with self._lock:
            if self._pending is not None:
                busy_kind = self._pending.kind
                pending = None
            else:
                # fresh buffer for every request
                pending = PendingRequest(kind=kind, future=future, timeout=timeout)
                self._pending = pending
                # armed before the write: the answer may arrive before write() returns
                pending.timer = self._scheduler.call_later(
                    timeout, lambda: self._on_deadline(pending)
                )

        if pending is None:
            log.debug("Rejecting %s request: %s still pending", kind.value, busy_kind.value)
            future.set_exception(DeviceBusyError(
                f"Cannot issue {kind.value} request: {busy_kind.value} request pending"
            ))
            return future

        try:
            self._write(frame)
        except TransportError as e:
            with self._lock:
                owned = self._pending is pending
                if owned:
                    self._pending = None
                    if pending.timer is not None:
                        pending.timer.cancel()
                        pending.timer = None
            if not isinstance(e, TransportWriteError):
                e = TransportWriteError(str(e), fatal=e.fatal)
            log.debug("%s request write failed: %s", kind.value, e)
            if owned:
                future.set_exception(e)
            return future

        log.debug("Issued %s request (timeout %.2fs)", kind.value, timeout)
        return future

    def write_when_idle(self, *frames: bytes) -> None:
        """Write *frames* only while no request is outstanding.

        The lock is held across all writes, so no request can be issued
        between the busy check and the last frame.

        Raises:
            DeviceBusyError: A request is pending.
            TransportWriteError: A write failed.
        """
        with self._lock:
            if self._pending is not None:
                raise DeviceBusyError(
                    f"Cannot write while a {self._pending.kind.value} request is pending"
                )
            try:
                for frame in frames:
                    self._write(frame)
            except TransportError as e:
                if isinstance(e, TransportWriteError):
                    raise
                raise TransportWriteError(str(e), fatal=e.fatal) from e

    # -- Inbound --------------------------------------------------------

    def feed(self, chunk: bytes) -> None:
        """Handle one inbound report."""
        if not chunk:
            return

        with self._lock:
            pending = self._pending
            if pending is None:
                log.debug("Dropping %d-byte report: no request pending", len(chunk))
                return
            if pending.timer is not None:
                pending.timer.cancel()
                pending.timer = None

            if pending.kind is ResponseKind.MONITORING:
                payload = bytes(chunk)
            else:
                pending.buffer += chunk
                if len(pending.buffer) < pending.expected_length:
                    log.debug("%s: %d/%d bytes", pending.kind.value,
                              len(pending.buffer), pending.expected_length)
                    pending.timer = self._scheduler.call_later(
                        pending.timeout, lambda: self._on_deadline(pending)
                    )
                    return
                payload = bytes(pending.buffer[:pending.expected_length])
            self._pending = None

        self._complete(pending, payload)

    def _complete(self, pending: PendingRequest, payload: bytes) -> None:
        try:
            result = self._decode(pending.kind, payload)
        except Exception as e:
            log.warning("%s response rejected: %s", pending.kind.value, e)
            pending.future.set_exception(e)
            return
        log.debug("%s request complete", pending.kind.value)
        pending.future.set_result(result)

    def _decode(self, kind: ResponseKind, payload: bytes) -> Any:
        if kind is ResponseKind.MONITORING:
            return parse_monitoring_data(payload)
        if kind is ResponseKind.CONFIGURATION:
            return parse_configuration(payload, self.revision)
        return payload

    # -- Deadline / abort -------------------------------------------------

    def _on_deadline(self, pending: PendingRequest) -> None:
        with self._lock:
            if self._pending is not pending:
                return
            self._pending = None
            received = len(pending.buffer)
        log.warning("%s request timed out after %.2fs (%d bytes received)",
                    pending.kind.value, pending.timeout, received)
        pending.future.set_exception(RequestTimeoutError(
            f"{pending.kind.value} request timed out after {pending.timeout}s "
            f"({received}/{pending.expected_length} bytes)"
        ))

    def abort(self, exc: BaseException) -> bool:
        """Fail the outstanding request, if any.

        Returns:
            True if a request was aborted.
        """
        with self._lock:
            pending = self._pending
            self._pending = None
            if pending is not None and pending.timer is not None:
                pending.timer.cancel()
        if pending is None:
            return False
        log.debug("Aborting %s request: %s", pending.kind.value, exc)
        pending.future.set_exception(exc)
        return True
