"""Database helpers for the airport operations store."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Tuple

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DEFAULT_DATABASE_URL
from .errors import Conflict, StoreUnavailable
from .models import Base

logger = logging.getLogger(__name__)


def _configure_sqlite(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own; take it over so SAVEPOINTs nest correctly.
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(connection):  # pragma: no cover - driver hook
        connection.exec_driver_sql("BEGIN")


def create_session_factory(
    db_url: str = DEFAULT_DATABASE_URL,
    *,
    echo: bool = False,
    connect_args: Dict[str, object] | None = None,
) -> Tuple[Engine, sessionmaker[Session]]:
    """Return an engine/session factory pair.

    SQLite engines get foreign keys switched on and explicit transaction
    control; an in-memory URL shares one connection across threads.
    """

    sqlite = db_url.startswith("sqlite")
    options: Dict[str, Any] = {"echo": echo, "connect_args": dict(connect_args or {})}
    if sqlite:
        options["connect_args"].setdefault("check_same_thread", False)
        if db_url.endswith(":memory:"):
            options["poolclass"] = StaticPool
    engine = create_engine(db_url, **options)
    if sqlite:
        _configure_sqlite(engine)
    return engine, sessionmaker(bind=engine, expire_on_commit=False)


def init_db(db_url: str = DEFAULT_DATABASE_URL, *, echo: bool = False) -> sessionmaker[Session]:
    """Create all tables and return a session factory."""

    engine, session_factory = create_session_factory(db_url, echo=echo)
    Base.metadata.create_all(engine)
    logger.info("Initialised schema at %s", engine.url.render_as_string(hide_password=True))
    return session_factory


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = session_factory()
    try:
        yield session
        session.commit()
    except OperationalError as exc:
        session.rollback()
        logger.warning("Store unavailable: %s", exc)
        raise StoreUnavailable("the database is temporarily unavailable") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def unique_writes(session: Session, conflict: str) -> Iterator[None]:
    """Run the block's writes inside a SAVEPOINT, reporting key clashes as :class:`Conflict`.

    Attribute changes must happen inside the block: ``begin_nested`` flushes
    whatever is already pending before the SAVEPOINT is emitted.
    """

    try:
        with session.begin_nested():
            yield
            session.flush()
    except IntegrityError as exc:
        raise Conflict(conflict) from exc
