from __future__ import annotations

from typing import Generator

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pastebin_lite.db import Base, build_engine
from pastebin_lite.domain import models as _models  # noqa: F401
from pastebin_lite.repositories.base import PasteStore
from pastebin_lite.repositories.memory import InMemoryPasteStore
from pastebin_lite.repositories.paste_repository import SqlAlchemyPasteStore
from pastebin_lite.services.paste_service import PasteService


@pytest.fixture(scope="function")
def engine(tmp_path) -> Generator[Engine, None, None]:
    """
    Create a fresh file-backed SQLite database for each test function.

    A file (rather than ``:memory:``) gives every session its own
    connection, which the concurrency tests rely on.
    """

    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'pastes.db'}")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(params=["sqlalchemy", "memory"])
def store(request, session_factory) -> PasteStore:
    """Every store-level test runs against both backends."""

    if request.param == "sqlalchemy":
        return SqlAlchemyPasteStore(session_factory=session_factory)
    return InMemoryPasteStore()


@pytest.fixture
def paste_service(store: PasteStore) -> PasteService:
    return PasteService(store=store)
