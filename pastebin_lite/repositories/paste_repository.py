from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Optional

from sqlalchemy import Select, Update, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pastebin_lite.domain import expiry_policy
from pastebin_lite.domain.errors import PasteContentionError, PasteStorageError
from pastebin_lite.domain.expiry_policy import Availability, as_utc
from pastebin_lite.domain.models import Paste, new_paste_id
from pastebin_lite.domain.outcomes import (
    Consumed,
    ConsumeOutcome,
    NotFound,
    PasteSnapshot,
    Unavailable,
)
from pastebin_lite.repositories.base import PasteStore


MAX_CONSUME_ATTEMPTS = 16


def _paste_to_snapshot(paste: Paste) -> PasteSnapshot:
    """Copy a Paste ORM entity into an immutable snapshot with UTC datetimes."""
    return PasteSnapshot(
        id=paste.id,
        content=paste.content,
        created_at=as_utc(paste.created_at),
        expires_at=as_utc(paste.expires_at) if paste.expires_at is not None else None,
        max_views=paste.max_views,
        view_count=paste.view_count,
    )


class PasteRepository:
    """
    Repository for Paste rows within a caller-owned session.

    All database interaction for Paste should go through this class.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def create_paste(
        self,
        *,
        content: str,
        created_at: datetime,
        expires_at: Optional[datetime] = None,
        max_views: Optional[int] = None,
    ) -> Paste:
        """
        Create and persist a new Paste.

        Note: Paste content is set only at creation time and is not exposed
        for updates via this repository.
        """

        paste = Paste(
            id=new_paste_id(),
            content=content,
            created_at=created_at,
            expires_at=expires_at,
            max_views=max_views,
            view_count=0,
        )
        self._session.add(paste)
        # Flush so that constraint violations surface inside the caller's transaction.
        self._session.flush()
        return paste

    def get_paste_by_id(self, paste_id: str, *, for_update: bool = False) -> Optional[Paste]:
        """
        Return a Paste by its id, or ``None`` if not found.

        With ``for_update`` the row is locked until the transaction ends on
        backends that support ``SELECT ... FOR UPDATE``.
        """

        stmt: Select[tuple[Paste]] = (
            select(Paste)
            .where(Paste.id == paste_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.execute(stmt).scalar_one_or_none()

    def increment_view_count_if_unchanged(self, paste_id: str, *, expected: int) -> Optional[int]:
        """
        Increment ``view_count`` only if it still equals ``expected``.

        Returns the new value, or ``None`` if another transaction changed the
        counter first.
        """

        stmt: Update = (
            update(Paste)
            .where(Paste.id == paste_id, Paste.view_count == expected)
            .values(view_count=Paste.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        if result.rowcount != 1:
            return None
        return expected + 1


class SqlAlchemyPasteStore(PasteStore):
    """
    Relational PasteStore.

    Owns session lifecycle: creates a session per operation, commits on
    success, rolls back on exception, and closes the session in a finally
    block.  Database errors surface as ``PasteStorageError``.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create(
        self,
        *,
        content: str,
        expires_at: Optional[datetime],
        max_views: Optional[int],
        created_at: datetime,
    ) -> str:
        session = self._session_factory()
        try:
            paste = PasteRepository(session=session).create_paste(
                content=content,
                created_at=created_at,
                expires_at=expires_at,
                max_views=max_views,
            )
            paste_id = paste.id
            session.commit()
            return paste_id
        except SQLAlchemyError as exc:
            session.rollback()
            raise PasteStorageError("Could not create paste.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def consume_view(self, paste_id: str, now: datetime) -> ConsumeOutcome:
        session = self._session_factory()
        try:
            repo = PasteRepository(session=session)
            for _ in range(MAX_CONSUME_ATTEMPTS):
                outcome = self._consume_once(repo, paste_id, now)
                if outcome is None:
                    # Lost the compare-and-set; start over on a fresh snapshot.
                    session.rollback()
                    continue
                if isinstance(outcome, Consumed):
                    session.commit()
                else:
                    session.rollback()
                return outcome
            raise PasteContentionError(
                f"Could not record a view of paste {paste_id} after "
                f"{MAX_CONSUME_ATTEMPTS} attempts."
            )
        except SQLAlchemyError as exc:
            session.rollback()
            raise PasteStorageError(f"Could not consume a view of paste {paste_id}.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _consume_once(
        repo: PasteRepository,
        paste_id: str,
        now: datetime,
    ) -> Optional[ConsumeOutcome]:
        paste = repo.get_paste_by_id(paste_id, for_update=True)
        if paste is None:
            return NotFound(paste_id)

        snapshot = _paste_to_snapshot(paste)
        if expiry_policy.evaluate(snapshot, now) is Availability.UNAVAILABLE:
            return Unavailable(paste_id)

        new_count = repo.increment_view_count_if_unchanged(
            paste_id,
            expected=snapshot.view_count,
        )
        if new_count is None:
            return None

        return Consumed(
            content=snapshot.content,
            remaining_views=expiry_policy.remaining_views(snapshot.max_views, new_count),
            expires_at=snapshot.expires_at,
        )

    def ping(self) -> None:
        session = self._session_factory()
        try:
            session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise PasteStorageError("Database is unreachable.") from exc
        finally:
            session.close()
