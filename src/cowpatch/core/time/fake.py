"""Fake Time implementation for testing.

FakeTime returns a fixed instant that advances by one second per call, so
consecutive labels stay unique and deterministic.
"""

from datetime import UTC, datetime, timedelta

from cowpatch.core.time.abc import Time


class FakeTime(Time):
    """Deterministic clock.

    This class has NO public setup methods. All state is provided via constructor
    or captured during execution.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._current = start or datetime(2024, 1, 1, tzinfo=UTC)
        self._calls = 0

    @property
    def calls(self) -> int:
        """Number of times now() was called."""
        return self._calls

    def now(self) -> datetime:
        moment = self._current
        self._current = moment + timedelta(seconds=1)
        self._calls += 1
        return moment
