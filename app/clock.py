# app/clock.py
"""
Wall-clock access for lifecycle decisions.

Every "now" read in business logic goes through a Clock so that tests and
previews can pin or advance time. Decisions read the clock at the moment
they are made; nothing caches "now" across documents.
"""

import threading
from datetime import UTC, datetime, timedelta


class Clock:
    """Source of the current UTC time."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by the test suite and by `--as-of` previews in the CLI.
    """

    def __init__(self, start: datetime | None = None):
        self._now = ensure_utc(start) if start else datetime.now(UTC)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = ensure_utc(value)

    def advance(self, delta: timedelta | None = None, **kwargs) -> datetime:
        """Move forward by `delta` or by timedelta keyword arguments."""
        step = delta if delta is not None else timedelta(**kwargs)
        with self._lock:
            self._now = self._now + step
            return self._now


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


_clock: Clock = SystemClock()


def get_clock() -> Clock:
    return _clock


def set_clock(clock: Clock) -> None:
    """Replace the process clock (tests)."""
    global _clock
    _clock = clock


def reset_clock() -> None:
    global _clock
    _clock = SystemClock()
