"""
Clock abstraction for time-dependent claim logic.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class IClock(ABC):
    """Wall-clock source."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as naive UTC datetime."""


class SystemClock(IClock):
    """Clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)
