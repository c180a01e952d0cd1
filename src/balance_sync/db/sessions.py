"""Database engine and session management."""
import os
from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from balance_sync.db.models import (  # noqa: F401  # pylint: disable=unused-import
    BalanceRecord, ConnectedAccount)

_DEFAULT_URL = "sqlite:///./balance_sync.db"


def make_engine(url: str | None = None, *, echo: bool | None = None) -> Engine:
    """Create an engine for `url` (defaults to DATABASE_URL).

    SQLite URLs get a thread-agnostic connection; in-memory SQLite shares one
    connection so every session sees the same tables.
    """
    url = url or os.getenv("DATABASE_URL", _DEFAULT_URL)
    if echo is None:
        echo = os.getenv("SQL_ECHO", "0") == "1"
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


@lru_cache
def get_engine() -> Engine:
    """Process-wide engine built from the environment."""
    return make_engine()


@contextmanager
def get_session(engine: Engine | None = None) -> Generator[Session, None, None]:
    """Yield a database session; commits on success, rolls back on error."""
    session = Session(engine or get_engine(), expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """Create all tables. Safe to call on startup (idempotent for existing tables)."""
    SQLModel.metadata.create_all(engine or get_engine())
