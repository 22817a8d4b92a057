"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` and provides small helpers used by the
application, the token sweeper and tests. File-backed and server
databases get a bounded connection pool so a request fails instead of
hanging when every connection is busy.
"""

from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, create_engine, Session

from .config import settings


def _engine_kwargs(url: str) -> dict:
    """Build `create_engine` keyword arguments for `url`.

    In-memory SQLite runs on a single-connection pool that does not
    accept the queue pool sizing options, so those are skipped there.
    """
    parsed = make_url(url)
    kwargs = {"echo": False}
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            return kwargs
    kwargs.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_pre_ping=True,
    )
    return kwargs


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))


def create_db_and_tables():
    """Create database tables using SQLModel metadata.

    This function is intended for local development and tests; deployed
    stores are expected to be migrated ahead of time. Existing tables are
    left untouched.
    """
    from . import models  # noqa: F401  registers the table metadata

    SQLModel.metadata.create_all(engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
