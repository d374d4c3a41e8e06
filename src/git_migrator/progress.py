"""Thread-safe progress reporting for migration and sync runs.

The orchestration thread mutates a ``ProgressReporter`` (``set_operation``,
``increment``, ``set_current``) while any number of observer threads poll
it (``current``, ``percentage``, ``operation``, ``eta``) or subscribe to
updates.

Subscribers are called synchronously on the mutating thread, after the
lock is released, with an immutable ``ProgressStatus`` snapshot.  A slow
subscriber therefore slows the run down.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ProgressStatus(BaseModel):
    """Point-in-time snapshot of a reporter.

    Attributes:
        current: Number of units processed.
        total: Number of units expected (0 when unknown).
        percentage: ``current / total * 100``, or 0 when total is 0.
        operation: Description of the step in progress.
        eta: Estimated time remaining.
        started_at: Wall-clock time ``start()`` was called, if it was.
    """

    current: int = 0
    total: int = 0
    percentage: float = 0.0
    operation: str = ""
    eta: timedelta = timedelta(0)
    started_at: datetime | None = None

    model_config = {"frozen": True}


Subscriber = Callable[[ProgressStatus], None]


def _percentage(current: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return current / total * 100


def _eta(current: int, total: int, elapsed: float | None) -> timedelta:
    if current <= 0 or not elapsed or elapsed <= 0:
        return timedelta(0)
    rate = current / elapsed
    remaining = max(total - current, 0) / rate
    return timedelta(seconds=int(remaining))


class ProgressReporter:
    """Counter and operation broadcaster shared across threads.

    Args:
        total: Number of units expected, 0 when unknown.
    """

    def __init__(self, total: int = 0) -> None:
        self._lock = threading.Lock()
        self._current = 0
        self._total = total
        self._operation = ""
        self._started_at: datetime | None = None
        self._started_monotonic: float | None = None
        self._subscribers: dict[int, Subscriber] = {}
        self._tokens = itertools.count()

    # ------------------------------------------------------------------
    # Mutation (orchestration thread)
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Mark the beginning of timed progress (used for the ETA)."""
        with self._lock:
            self._started_at = datetime.now(timezone.utc)
            self._started_monotonic = time.monotonic()
        self._notify()

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total
        self._notify()

    def set_current(self, current: int) -> None:
        with self._lock:
            self._current = current
        self._notify()

    def increment(self) -> None:
        with self._lock:
            self._current += 1
        self._notify()

    def set_operation(self, operation: str) -> None:
        with self._lock:
            self._operation = operation
        self._notify()

    # ------------------------------------------------------------------
    # Observation (any thread)
    # ------------------------------------------------------------------

    @property
    def current(self) -> int:
        with self._lock:
            return self._current

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def percentage(self) -> float:
        with self._lock:
            return _percentage(self._current, self._total)

    @property
    def operation(self) -> str:
        with self._lock:
            return self._operation

    @property
    def eta(self) -> timedelta:
        with self._lock:
            return _eta(self._current, self._total, self._elapsed())

    def status(self) -> ProgressStatus:
        """Return an immutable snapshot of the current progress."""
        with self._lock:
            return self._snapshot()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* for every future update.

        Returns:
            A function that removes the subscription.  Calling it more
            than once is harmless.
        """
        with self._lock:
            token = next(self._tokens)
            self._subscribers[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _elapsed(self) -> float | None:
        if self._started_monotonic is None:
            return None
        return time.monotonic() - self._started_monotonic

    def _snapshot(self) -> ProgressStatus:
        # Caller must hold the lock.
        return ProgressStatus(
            current=self._current,
            total=self._total,
            percentage=_percentage(self._current, self._total),
            operation=self._operation,
            eta=_eta(self._current, self._total, self._elapsed()),
            started_at=self._started_at,
        )

    def _notify(self) -> None:
        with self._lock:
            status = self._snapshot()
            subscribers = list(self._subscribers.values())

        for callback in subscribers:
            try:
                callback(status)
            except Exception:
                logger.exception("Progress subscriber %r failed", callback)
