"""SQLite persistence for transfer jobs and linked Spotify accounts."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from soma.config import load_config
from soma.logging import get_logger
from soma.logging_events import log_event

logger = get_logger(__name__)

T = TypeVar("T")

SessionCallable = Callable[[Session], T]
SessionFactory = Callable[[], AbstractContextManager[Session]]


class Base(DeclarativeBase):
    pass


_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None
_engine_url: str | None = None


def _sqlite_url(database_url: str) -> URL:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        raise ValueError(f"Unsupported database backend: {url.get_backend_name()}")
    return url.set(drivername="sqlite+pysqlite")


def _open_engine(url: URL) -> Engine:
    # Job tasks reach the database from worker threads.
    connect_args = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args)


def _session_factory() -> sessionmaker[Session]:
    global _engine, _sessions, _engine_url

    database_url = load_config().database.url
    if _sessions is not None and _engine_url == database_url:
        return _sessions

    url = _sqlite_url(database_url)

    dispose_engine()
    engine = _open_engine(url)

    from soma import models  # noqa: F401

    Base.metadata.create_all(bind=engine, checkfirst=True)
    _engine = engine
    _engine_url = database_url
    _sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    log_event(
        logger,
        "database.ready",
        component="db",
        status="ok",
        database=url.database or ":memory:",
        tables=",".join(sorted(Base.metadata.tables)),
    )
    return _sessions


def init_db() -> None:
    """Open the configured SQLite database and create missing tables."""

    _session_factory()


def dispose_engine() -> None:
    """Close pooled connections; the next session reopens the configured database."""

    global _engine, _sessions, _engine_url

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None
    _engine_url = None


@contextmanager
def session_scope() -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on any error."""

    session = _session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _call_with_session(func: SessionCallable[T], factory: SessionFactory | None) -> T:
    with (factory or session_scope)() as session:
        return func(session)


async def run_session(func: SessionCallable[T], *, factory: SessionFactory | None = None) -> T:
    """Execute ``func`` with a database session in a worker thread."""

    return await asyncio.to_thread(_call_with_session, func, factory)


__all__ = [
    "Base",
    "SessionCallable",
    "SessionFactory",
    "dispose_engine",
    "init_db",
    "run_session",
    "session_scope",
]
