"""
Injectable time source for the stock kernel.

Lot ``created_at`` decides which bags are allocated first, and loads and
reports are stamped with the time they were committed or reconciled.
Services take a Clock in their constructor and never read the wall clock
themselves, so tests can place every bag at a known instant.

Architecture position:
    Kernel > Domain.  SystemClock is the only place that reads real time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Bags created between two ``advance()`` calls share one timestamp, so
    their allocation order falls back to lot id.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward and return the new time."""
        self._current += timedelta(seconds=seconds)
        return self._current
