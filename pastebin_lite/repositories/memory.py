"""InMemoryPasteStore: dict-backed storage for development and testing."""

from __future__ import annotations

import dataclasses
import threading
from datetime import datetime
from typing import Optional

from pastebin_lite.domain import expiry_policy
from pastebin_lite.domain.expiry_policy import Availability
from pastebin_lite.domain.models import new_paste_id
from pastebin_lite.domain.outcomes import (
    Consumed,
    ConsumeOutcome,
    NotFound,
    PasteSnapshot,
    Unavailable,
)
from pastebin_lite.repositories.base import PasteStore


@dataclasses.dataclass
class _Entry:
    snapshot: PasteSnapshot
    lock: threading.Lock = dataclasses.field(default_factory=threading.Lock)


class InMemoryPasteStore(PasteStore):
    """In-memory store with one lock per paste.  Data is lost on process exit."""

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._registry_lock = threading.Lock()

    def create(
        self,
        *,
        content: str,
        expires_at: Optional[datetime],
        max_views: Optional[int],
        created_at: datetime,
    ) -> str:
        with self._registry_lock:
            paste_id = new_paste_id()
            while paste_id in self._entries:
                paste_id = new_paste_id()
            self._entries[paste_id] = _Entry(
                PasteSnapshot(
                    id=paste_id,
                    content=content,
                    created_at=created_at,
                    expires_at=expires_at,
                    max_views=max_views,
                    view_count=0,
                )
            )
        return paste_id

    def consume_view(self, paste_id: str, now: datetime) -> ConsumeOutcome:
        with self._registry_lock:
            entry = self._entries.get(paste_id)
        if entry is None:
            return NotFound(paste_id)

        with entry.lock:
            snapshot = entry.snapshot
            if expiry_policy.evaluate(snapshot, now) is Availability.UNAVAILABLE:
                return Unavailable(paste_id)
            entry.snapshot = dataclasses.replace(
                snapshot, view_count=snapshot.view_count + 1
            )
            updated = entry.snapshot

        return Consumed(
            content=updated.content,
            remaining_views=expiry_policy.remaining_views(
                updated.max_views, updated.view_count
            ),
            expires_at=updated.expires_at,
        )

    def view_count(self, paste_id: str) -> Optional[int]:
        """Current counter for ``paste_id`` without consuming a view."""
        with self._registry_lock:
            entry = self._entries.get(paste_id)
        if entry is None:
            return None
        with entry.lock:
            return entry.snapshot.view_count
