"""Cancellable delayed and repeating tasks.

Track polling and program refresh run on these handles so that switching
or stopping a channel can cancel whatever is pending.
"""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from loguru import logger

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ScheduledTask(Protocol):
    """Handle to a pending callback."""

    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


class TaskScheduler(Protocol):
    """Schedules callbacks off the caller's thread."""

    def call_later(
        self, delay: float, callback: Callable[[], None], name: str = ""
    ) -> ScheduledTask: ...

    def call_every(
        self, interval: float, callback: Callable[[], None], name: str = ""
    ) -> ScheduledTask: ...


def _run_guarded(callback: Callable[[], None], name: str) -> None:
    try:
        callback()
    except Exception:
        logger.exception(f"Scheduled task {name or callback!r} failed")


class TimerTask:
    """One-shot callback on a daemon threading.Timer."""

    def __init__(self, delay: float, callback: Callable[[], None], name: str = "") -> None:
        self._cancelled = threading.Event()
        self._name = name
        self._callback = callback
        self._timer = threading.Timer(max(0.0, delay), self._fire)
        self._timer.daemon = True
        if name:
            self._timer.name = name

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> "TimerTask":
        self._timer.start()
        return self

    def cancel(self) -> None:
        self._cancelled.set()
        self._timer.cancel()

    def _fire(self) -> None:
        if self._cancelled.is_set():
            return
        _run_guarded(self._callback, self._name)


class RepeatingTask:
    """Callback every ``interval`` seconds on a daemon thread until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "") -> None:
        self._interval = interval
        self._callback = callback
        self._name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def start(self) -> "RepeatingTask":
        self._thread = threading.Thread(
            target=self._run, daemon=True, name=self._name or "RepeatingTask"
        )
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            _run_guarded(self._callback, self._name)


class ThreadTimerScheduler:
    """TaskScheduler backed by threads."""

    def call_later(
        self, delay: float, callback: Callable[[], None], name: str = ""
    ) -> TimerTask:
        return TimerTask(delay, callback, name).start()

    def call_every(
        self, interval: float, callback: Callable[[], None], name: str = ""
    ) -> RepeatingTask:
        return RepeatingTask(interval, callback, name).start()
