"""
Clock -- injectable time source.

Services that stamp posted_at, cost_updated_at or document dates receive a
Clock through their constructor and never call ``datetime.now()`` directly,
so tests can pin time with DeterministicClock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Abstract clock.  ``now()`` is always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Production clock returning the current UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Example:
        clock = DeterministicClock(datetime(2024, 6, 1, tzinfo=timezone.utc))
        clock.advance(3600)
    """

    def __init__(self, fixed_time: datetime | None = None):
        if fixed_time is None:
            fixed_time = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        if fixed_time.tzinfo is None:
            fixed_time = fixed_time.replace(tzinfo=timezone.utc)
        self._current = fixed_time

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float) -> None:
        self._current = self._current + timedelta(seconds=seconds)

    def set(self, new_time: datetime) -> None:
        if new_time.tzinfo is None:
            new_time = new_time.replace(tzinfo=timezone.utc)
        self._current = new_time
