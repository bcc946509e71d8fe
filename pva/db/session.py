"""Engine and session factory: Postgres (via psycopg) or SQLite file."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pva.config import get_settings
from pva.db.models import Base

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _on_sqlite_connect(dbapi_connection, connection_record) -> None:
    # Let SQLAlchemy own BEGIN so SAVEPOINTs nest inside a real transaction
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _on_sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def make_engine(database_url: str, **kwargs) -> Engine:
    """Create an engine; SQLite gets foreign keys on and cross-thread access."""
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(database_url, connect_args=connect_args, **kwargs)
        event.listen(engine, "connect", _on_sqlite_connect)
        event.listen(engine, "begin", _on_sqlite_begin)
        return engine
    return create_engine(database_url, pool_pre_ping=True, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine | None = None) -> None:
    """Create all tables if missing."""
    Base.metadata.create_all(engine or get_engine())


def get_engine() -> Engine:
    """Return singleton engine built from PVA_DATABASE_URL (or the SQLite default)."""
    global _engine
    if _engine is not None:
        return _engine
    settings = get_settings()
    url = settings.database_url
    _engine = make_engine(url)
    if url.startswith("sqlite"):
        logger.info("Using SQLite database at %s", url.removeprefix("sqlite:///"))
    else:
        logger.info("Using database backend %s", _engine.dialect.name)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Return singleton session factory bound to get_engine(); tables are created on first use."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        init_db(engine)
        _session_factory = make_session_factory(engine)
    return _session_factory


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Transactional scope: commit on success, roll back on any error."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
