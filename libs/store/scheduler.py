"""Owned, cancellable timers used by the store's auto-save."""

from __future__ import annotations

import itertools
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional


class TimerHandle(ABC):
    """A scheduled callback that can be cancelled."""

    @abstractmethod
    def cancel(self) -> None:
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""

    @abstractmethod
    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""


# ----------------------------------------------------------------------
# real time


class _ThreadTimer(TimerHandle):
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class _RepeatingTimer(TimerHandle):
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(interval, callback), name="autosave-interval", daemon=True
        )
        self._thread.start()

    def _run(self, interval: float, callback: Callable[[], None]) -> None:
        while not self._stopped.wait(interval):
            callback()

    def cancel(self) -> None:
        self._stopped.set()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()


class ThreadingScheduler(Scheduler):
    """Daemon-thread timers; callbacks run off the caller's thread."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return _ThreadTimer(timer)

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        return _RepeatingTimer(interval, callback)


# ----------------------------------------------------------------------
# virtual time


class _ManualTimer(TimerHandle):
    def __init__(
        self, due: float, seq: int, callback: Callable[[], None], interval: Optional[float]
    ) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self.interval = interval
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Virtual clock: timers fire only when :meth:`advance` moves time past them.

    Callbacks run synchronously on the caller's thread, in due-time order
    (ties in scheduling order).
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: List[_ManualTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self.now + delay, next(self._seq), callback, None)
        self._timers.append(timer)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self.now + interval, next(self._seq), callback, interval)
        self._timers.append(timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            self._timers = [t for t in self._timers if not t.cancelled]
            due = [t for t in self._timers if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.now = timer.due
            if timer.interval is None:
                self._timers.remove(timer)
            else:
                timer.due += timer.interval
            timer.callback()
        self.now = target


__all__ = ["TimerHandle", "Scheduler", "ThreadingScheduler", "ManualScheduler"]
