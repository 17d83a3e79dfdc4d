"""
Repeating-task scheduling.

The refresh manager only needs "run `fn` every N seconds until cancelled". That
capability is expressed as a small protocol so tests (and alternative runtimes)
can drive ticks by hand instead of waiting on real timers.

Contract:
- `every()` returns a handle immediately; the first call happens one interval later.
- `cancel()` is synchronous and idempotent: once it returns, no new call starts.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class ScheduledTask(Protocol):
    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def every(self, interval_seconds: float, fn: Callable[[], None], *, name: str = "") -> ScheduledTask: ...


class _ThreadTask:
    """One daemon thread waiting on an Event between calls."""

    def __init__(self, interval_seconds: float, fn: Callable[[], None], name: str):
        self._interval = float(interval_seconds)
        self._fn = fn
        self._name = name
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name or "hauntscore-task", daemon=True)
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def cancel(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._fn()
            except Exception:
                # Keep the schedule alive; the callable owns its own error reporting.
                logger.exception("Scheduled task %s raised", self._name)


class ThreadScheduler:
    """Default scheduler backed by `threading` (one thread per task)."""

    def every(self, interval_seconds: float, fn: Callable[[], None], *, name: str = "") -> _ThreadTask:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        return _ThreadTask(interval_seconds, fn, name)
