"""
Delayed callbacks for request deadlines and reconnect retries.

``ThreadingScheduler`` runs callbacks on daemon ``threading.Timer``
threads.  Tests inject a manual scheduler with the same interface.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable


class TimerHandle(ABC):
    """Cancellable handle for one scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running (no-op if it already ran)."""


class Scheduler(ABC):
    """Schedules callbacks after a delay."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run *callback* once after *delay* seconds."""


class _ThreadTimerHandle(TimerHandle):

    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return _ThreadTimerHandle(timer)
