from __future__ import annotations

import typing as t

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from flask import Flask
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import QueuePool


Base = declarative_base()

_engine: Engine | None = None
SessionLocal: scoped_session = scoped_session(
    sessionmaker(autocommit=False, autoflush=False)
)

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _use_immediate_transactions(engine: Engine) -> None:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite defers BEGIN until the first DML statement, so two sessions can
    both read a row and then race to write it. ``BEGIN IMMEDIATE`` makes
    concurrent writers queue on the busy timeout instead.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _record) -> None:  # type: ignore[unused-variable]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn) -> None:  # type: ignore[unused-variable]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_uri: str, *, echo: bool = False, future: bool = True) -> Engine:
    """
    Create an engine for ``database_uri``.

    SQLite gets thread-shareable connections and immediate transactions.  An
    in-memory database lives in exactly one connection, so its pool hands
    that connection to one session at a time; the others wait for it.
    """
    url = make_url(database_uri)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_uri, future=future, echo=echo)

    connect_args: dict[str, t.Any] = {
        "check_same_thread": False,
        "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
    }
    if url.database in (None, "", ":memory:"):
        engine = create_engine(
            database_uri,
            future=future,
            echo=echo,
            connect_args=connect_args,
            poolclass=QueuePool,
            pool_size=1,
            max_overflow=0,
            pool_timeout=SQLITE_BUSY_TIMEOUT_SECONDS,
        )
    else:
        engine = create_engine(
            database_uri,
            future=future,
            echo=echo,
            connect_args=connect_args,
        )
    _use_immediate_transactions(engine)
    return engine


def get_engine() -> Engine:
    """
    Return the global SQLAlchemy engine.

    This expects that ``init_db(app)`` has been called during application
    startup to configure the engine from Flask config.
    """
    if _engine is None:  # type: ignore[truthy-function]
        raise RuntimeError("Database engine is not initialized. Call init_db(app) first.")
    return t.cast(Engine, _engine)


def init_db(app: Flask) -> None:
    """
    Initialize the SQLAlchemy engine and session factory for the Flask app.

    Reads the database URL from ``app.config['SQLALCHEMY_DATABASE_URI']``.
    """
    global _engine

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri:
        raise RuntimeError(
            "SQLALCHEMY_DATABASE_URI is not configured on the Flask app."
        )

    if _engine is not None:
        SessionLocal.remove()
        _engine.dispose()

    _engine = build_engine(
        database_uri,
        future=app.config.get("SQLALCHEMY_FUTURE", True),
        echo=app.config.get("SQLALCHEMY_ECHO", False),
    )
    SessionLocal.configure(bind=_engine)

    if app.config.get("SQLALCHEMY_CREATE_ALL", False):
        # Models must be imported so their tables are registered on Base.
        from pastebin_lite.domain import models as _models  # noqa: F401

        Base.metadata.create_all(_engine)

    @app.cli.command("upgrade-db")
    def upgrade_db_command() -> None:  # type: ignore[unused-variable]
        """Apply Alembic migrations up to the latest revision."""

        upgrade_database(app)

    @app.teardown_appcontext
    def remove_session(_exc: BaseException | None) -> None:  # type: ignore[unused-variable]
        """Remove the scoped session at the end of the request."""

        SessionLocal.remove()


def upgrade_database(app: Flask, revision: str = "head") -> None:
    """
    Run Alembic migrations against the app's database.

    The ini file comes from ``app.config['ALEMBIC_CONFIG']``; the database URL
    is always the app's own, and logging is left to the application.
    """
    config = AlembicConfig(app.config["ALEMBIC_CONFIG"])
    config.attributes["sqlalchemy_url"] = app.config["SQLALCHEMY_DATABASE_URI"]
    config.attributes["configure_logging"] = False
    alembic_command.upgrade(config, revision)
