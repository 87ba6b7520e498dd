"""Injectable time source.

Every "now" used for expiry, rate windows and retention comes from a Clock,
so issuance and expiry logic stays deterministic under test.
"""

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Source of the current time (timezone-aware UTC)."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Manually driven clock for tests and replays.

    Args:
        start: Initial time. Naive values are interpreted as UTC.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = _as_utc(start or datetime.now(UTC))

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        """Jump to an absolute time."""
        self._now = _as_utc(value)

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by ``delta`` and return the new time."""
        self._now = self._now + delta
        return self._now


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
