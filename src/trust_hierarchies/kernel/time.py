"""
Clock abstraction for deterministic testing

Timespans are half-open intervals in Unix milliseconds, so the whole engine
reads time through `now_ms()`. Tests swap in a clock they can freeze and
step across interval boundaries one millisecond at a time.
"""

import time
from datetime import datetime, timezone
from typing import Protocol


class TimeProvider(Protocol):
    """Protocol for time providers - allows deterministic testing"""

    def now_ms(self) -> int:
        """Return current Unix time in milliseconds"""
        ...


class RealTimeProvider:
    """Production time provider using system clock"""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class TestTimeProvider:
    """
    Controllable time provider for deterministic tests

    Starts at the given millisecond (Unix epoch by default) and only moves
    when told to.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, initial_ms: int = 0) -> None:
        self._current_ms = initial_ms

    def now_ms(self) -> int:
        return self._current_ms

    def set_time_ms(self, ms: int) -> None:
        """Set current time to specific value"""
        self._current_ms = ms

    def advance_ms(self, ms: int) -> None:
        """Advance time by specified milliseconds"""
        self._current_ms += ms


def ms_to_datetime(ms: int) -> datetime:
    """Convert Unix milliseconds to an aware UTC datetime"""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


default_time_provider: TimeProvider = RealTimeProvider()
