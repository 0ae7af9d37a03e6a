from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pastebin_lite.domain.outcomes import Consumed


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    # 2021-01-01T00:01:00.000Z
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    stamp = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def consumed_to_dto(outcome: Consumed) -> dict[str, Any]:
    """Convert a granted view to the JSON body returned by the API."""
    return {
        "content": outcome.content,
        "remaining_views": outcome.remaining_views,
        "expires_at": isoformat_utc(outcome.expires_at),
    }
