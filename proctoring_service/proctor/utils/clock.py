"""
Clock and Scheduler - time sources and timer handles for the proctoring loop

Business logic never touches wall-clock timers directly: it asks a Clock
for the time and a Scheduler for timeouts/intervals. Production code uses
the asyncio implementations; tests drive VirtualScheduler by hand.
"""

import asyncio
import heapq
import itertools
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp (the form stored in the database)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock(ABC):
    """Source of monotonic seconds and wall-clock timestamps"""

    @abstractmethod
    def monotonic(self) -> float:
        ...

    @abstractmethod
    def utcnow(self) -> datetime:
        ...


class SystemClock(Clock):
    def monotonic(self) -> float:
        return time.monotonic()

    def utcnow(self) -> datetime:
        return utcnow()


class TimerHandle(ABC):
    """Cancellable handle for a pending timeout or interval"""

    @abstractmethod
    def cancel(self):
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    """
    Tick source abstraction.

    Subclasses implement call_later; call_every is built on top of it.
    """

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[..., Any], *args) -> TimerHandle:
        ...

    def call_every(self, interval: float, callback: Callable[..., Any], *args) -> TimerHandle:
        """Run callback every `interval` seconds until the handle is cancelled"""
        handle = _RepeatingTimer(self, interval, callback, args)
        handle.start()
        return handle


class _RepeatingTimer(TimerHandle):
    def __init__(self, scheduler: Scheduler, interval: float, callback: Callable, args: tuple):
        self._scheduler = scheduler
        self._interval = interval
        self._callback = callback
        self._args = args
        self._pending: Optional[TimerHandle] = None
        self._cancelled = False

    def start(self):
        self._pending = self._scheduler.call_later(self._interval, self._fire)

    def _fire(self):
        if self._cancelled:
            return
        # Re-arm first so a failing callback does not stop the interval
        self.start()
        self._callback(*self._args)

    def cancel(self):
        self._cancelled = True
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled


# ============== asyncio ==============

class _AsyncioTimer(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self):
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by the asyncio event loop.

    If no loop is given, the running loop is looked up on each call, so the
    scheduler can be created before the loop starts (e.g. at import time).
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[..., Any], *args) -> TimerHandle:
        return _AsyncioTimer(self._get_loop().call_later(delay, callback, *args))


# ============== Virtual time (tests, replays) ==============

class VirtualClock(Clock):
    """
    Manually advanced clock.

    Time is kept in integer milliseconds so repeated 200 ms steps land
    exactly on threshold boundaries.
    """

    def __init__(self, start: Optional[datetime] = None):
        self.start = start or datetime(2025, 1, 1, 12, 0, 0)
        self.now_ms = 0

    def monotonic(self) -> float:
        return self.now_ms / 1000.0

    def utcnow(self) -> datetime:
        return self.start + timedelta(milliseconds=self.now_ms)


class _VirtualTimer(TimerHandle):
    def __init__(self, callback: Callable, args: tuple):
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class VirtualScheduler(Scheduler):
    """Deterministic scheduler: timers fire only inside advance()"""

    def __init__(self, clock: Optional[VirtualClock] = None):
        self.clock = clock or VirtualClock()
        self._queue: List[Tuple[int, int, _VirtualTimer]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args) -> TimerHandle:
        timer = _VirtualTimer(callback, args)
        due = self.clock.now_ms + max(0, int(round(delay * 1000)))
        heapq.heappush(self._queue, (due, next(self._counter), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) timers"""
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, seconds: float):
        """Move time forward, firing every timer that comes due on the way"""
        target = self.clock.now_ms + int(round(seconds * 1000))

        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.clock.now_ms = due
            try:
                timer.callback(*timer.args)
            except Exception as e:
                # Mirror asyncio: a failing callback is reported, not raised
                logger.exception(f"Timer callback failed: {e}")

        self.clock.now_ms = target
