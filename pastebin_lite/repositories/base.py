"""PasteStore contract shared by the relational and in-memory backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from pastebin_lite.domain.outcomes import ConsumeOutcome


class PasteStore(ABC):
    """Abstract base for paste storage backends.

    Both operations are atomic.  ``consume_view`` in particular must read,
    judge and increment a paste as one step, so that concurrent callers can
    never push ``view_count`` past ``max_views``.
    """

    @abstractmethod
    def create(
        self,
        *,
        content: str,
        expires_at: Optional[datetime],
        max_views: Optional[int],
        created_at: datetime,
    ) -> str:
        """Persist a new paste with ``view_count = 0`` and return its id."""
        ...

    @abstractmethod
    def consume_view(self, paste_id: str, now: datetime) -> ConsumeOutcome:
        """Judge the paste at ``now`` and, if it is available, count one view."""
        ...

    def ping(self) -> None:
        """Raise if the backend is unreachable.  No-op by default."""
