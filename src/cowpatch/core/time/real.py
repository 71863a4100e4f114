"""Real time implementation."""

from datetime import UTC, datetime

from cowpatch.core.time.abc import Time


class RealTime(Time):
    """Production implementation reading the system clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)
