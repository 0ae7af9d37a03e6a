from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from .outcomes import PasteSnapshot


class Availability(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    """
    Return whether a TTL has run out at ``now``.

    A paste without ``expires_at`` never expires by time.  The expiry
    instant itself already counts as expired.
    """
    if expires_at is None:
        return False
    return as_utc(now) >= as_utc(expires_at)


def is_view_exhausted(max_views: Optional[int], view_count: int) -> bool:
    if max_views is None:
        return False
    return view_count >= max_views


def evaluate(snapshot: PasteSnapshot, now: datetime) -> Availability:
    """
    Judge a snapshot at ``now``.

    Time expiry and view exhaustion are independent; either one makes the
    paste unavailable and no reason is reported.
    """
    if is_expired(snapshot.expires_at, now) or is_view_exhausted(
        snapshot.max_views, snapshot.view_count
    ):
        return Availability.UNAVAILABLE
    return Availability.AVAILABLE


def remaining_views(max_views: Optional[int], view_count: int) -> Optional[int]:
    """Views left after ``view_count``; ``None`` when unlimited, never negative."""
    if max_views is None:
        return None
    return max(0, max_views - view_count)
