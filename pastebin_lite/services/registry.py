from __future__ import annotations

from typing import Optional

from flask import Flask, current_app

from pastebin_lite.db import SessionLocal
from pastebin_lite.repositories.base import PasteStore
from pastebin_lite.repositories.paste_repository import SqlAlchemyPasteStore
from pastebin_lite.services.paste_service import PasteService


_STORE_KEY = "pastebin_lite.paste_store"
_SERVICE_KEY = "pastebin_lite.paste_service"


def init_services(app: Flask, store: Optional[PasteStore] = None) -> None:
    """
    Attach the paste store and service to ``app``.

    Defaults to the SQLAlchemy store bound to ``SessionLocal``; pass
    ``store`` to run the app against another backend.
    """
    if store is None:
        store = SqlAlchemyPasteStore(session_factory=SessionLocal)
    app.extensions[_STORE_KEY] = store
    app.extensions[_SERVICE_KEY] = PasteService(store=store)


def get_paste_store() -> PasteStore:
    return current_app.extensions[_STORE_KEY]


def get_paste_service() -> PasteService:
    return current_app.extensions[_SERVICE_KEY]
