from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from pastebin_lite.domain.errors import InvalidPasteParameters
from pastebin_lite.domain.expiry_policy import as_utc
from pastebin_lite.domain.outcomes import ConsumeOutcome, CreatedPaste
from pastebin_lite.repositories.base import PasteStore


@dataclass
class PasteService:
    """
    Application service coordinating paste use cases.

    Every operation takes ``now`` explicitly; callers obtain it from a
    ``Clock`` once per request.  ``fetch_and_consume`` is the only way a
    paste's content is read, and every successful read counts as a view.
    """

    store: PasteStore

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create_paste(
        self,
        *,
        content: str,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
        now: datetime,
    ) -> CreatedPaste:
        """
        Create a new paste.

        - ``content`` must be a non-empty string
        - ``ttl_seconds`` (if provided) must be >= 1; ``expires_at = now + ttl``
        - ``max_views`` (if provided) must be >= 1
        """
        if not content:
            raise InvalidPasteParameters("content cannot be empty.")
        if ttl_seconds is not None and ttl_seconds < 1:
            raise InvalidPasteParameters("ttl_seconds must be >= 1.")
        if max_views is not None and max_views < 1:
            raise InvalidPasteParameters("max_views must be >= 1.")

        created_at = as_utc(now)
        expires_at = None
        if ttl_seconds is not None:
            try:
                expires_at = created_at + timedelta(seconds=ttl_seconds)
            except OverflowError as exc:
                raise InvalidPasteParameters("ttl_seconds is out of range.") from exc

        paste_id = self.store.create(
            content=content,
            expires_at=expires_at,
            max_views=max_views,
            created_at=created_at,
        )
        return CreatedPaste(
            id=paste_id,
            created_at=created_at,
            expires_at=expires_at,
            max_views=max_views,
        )

    # -------------------------------------------------------------------------
    # Retrieval / viewing
    # -------------------------------------------------------------------------
    def fetch_and_consume(self, paste_id: str, *, now: datetime) -> ConsumeOutcome:
        return self.store.consume_view(paste_id, as_utc(now))
