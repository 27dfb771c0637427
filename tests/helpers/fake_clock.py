"""FakeClock - controllable time source for deterministic tests.

Services, stubs and the queue accept a `clock` callable returning an
aware UTC datetime. FakeClock is such a callable whose time only moves
when the test says so.

    >>> clock = FakeClock(frozen_at=datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc))
    >>> clock().hour
    10
    >>> clock.advance(seconds=3600)
    >>> clock().hour
    11
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


class FakeClock:
    """Frozen clock that advances only on request."""

    def __init__(self, frozen_at: datetime | None = None) -> None:
        if frozen_at is None:
            frozen_at = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        if frozen_at.tzinfo is None:
            frozen_at = frozen_at.replace(tzinfo=timezone.utc)
        self._current_time = frozen_at

    def __call__(self) -> datetime:
        return self._current_time

    def now(self) -> datetime:
        return self._current_time

    def advance(
        self,
        seconds: float | int | None = None,
        delta: timedelta | None = None,
        milliseconds: int | None = None,
    ) -> None:
        """Advance time by seconds, milliseconds or a timedelta.

        Raises:
            ValueError: If no amount is given or the amount is negative.
        """
        if delta is not None:
            step = delta
        elif seconds is not None:
            step = timedelta(seconds=seconds)
        elif milliseconds is not None:
            step = timedelta(milliseconds=milliseconds)
        else:
            raise ValueError("Must provide seconds, milliseconds or delta")

        if step < timedelta(0):
            raise ValueError("Cannot advance time backwards; use set_time()")
        self._current_time += step

    def set_time(self, new_time: datetime) -> None:
        """Set time to an explicit value (naive values are taken as UTC)."""
        if new_time.tzinfo is None:
            new_time = new_time.replace(tzinfo=timezone.utc)
        self._current_time = new_time
