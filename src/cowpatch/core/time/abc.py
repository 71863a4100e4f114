"""Time operations abstraction for testing.

Stash labels and temporary branch names embed the current time, so the clock
is injected rather than read directly.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class Time(ABC):
    """Abstract time operations for dependency injection."""

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


def to_millis(moment: datetime) -> int:
    """Milliseconds since the epoch."""
    return int(moment.timestamp() * 1000)
