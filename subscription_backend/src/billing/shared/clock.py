"""
Time sources

Every piece of date math in the billing module takes its "now" from an
injected clock. Production code uses SystemClock; tests pin time with
FixedClock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of the current time (timezone-aware, UTC)."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """
    A clock that only moves when told to.

    Usage:
        clock = FixedClock(datetime(2026, 1, 15, tzinfo=timezone.utc))
        clock.advance(days=2)
    """

    def __init__(self, moment: datetime):
        self._moment = ensure_utc(moment)

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = ensure_utc(moment)

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs."""
        self._moment = self._moment + timedelta(**kwargs)
        return self._moment


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def beginning_of_day(value: datetime) -> datetime:
    return ensure_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return ensure_utc(value).replace(hour=23, minute=59, second=59, microsecond=999999)
