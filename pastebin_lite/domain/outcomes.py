from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union


@dataclass(frozen=True)
class PasteSnapshot:
    """Point-in-time copy of a stored paste, as seen inside one atomic step."""

    id: str
    content: str
    created_at: datetime
    expires_at: Optional[datetime]
    max_views: Optional[int]
    view_count: int


@dataclass(frozen=True)
class CreatedPaste:
    id: str
    created_at: datetime
    expires_at: Optional[datetime]
    max_views: Optional[int]


@dataclass(frozen=True)
class NotFound:
    """No paste with the requested id exists."""

    paste_id: str


@dataclass(frozen=True)
class Unavailable:
    """The paste exists but has expired or used up its views."""

    paste_id: str


@dataclass(frozen=True)
class Consumed:
    """A view was granted and counted."""

    content: str
    remaining_views: Optional[int]
    expires_at: Optional[datetime]


ConsumeOutcome = Union[NotFound, Unavailable, Consumed]
