"""Clock abstraction so expiry can be evaluated against a chosen instant."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Clock(Protocol):
    """Source of "now".  Inject a fixed clock in tests."""

    def now(self) -> datetime: ...


class SystemClock:
    """Default clock backed by the real system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to a single instant."""

    def __init__(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def __repr__(self) -> str:
        return f"FixedClock({self._instant.isoformat()})"


def from_epoch_millis(value: int) -> datetime:
    """Convert milliseconds since the Unix epoch to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=value)


def to_epoch_millis(instant: datetime) -> int:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return (instant - _EPOCH) // timedelta(milliseconds=1)


def resolve_clock(*, test_mode: bool, override_ms: Optional[int] = None) -> Clock:
    """
    Pick the clock for one request.

    Outside test mode the override is ignored and the wall clock is used.
    In test mode an override pins "now" to that instant; without one the
    wall clock is used as well.
    """
    if test_mode and override_ms is not None:
        return FixedClock(from_epoch_millis(override_ms))
    return SystemClock()
