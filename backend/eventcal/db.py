# backend/eventcal/db.py
"""Database session and base model setup."""

from __future__ import annotations

from typing import Generator
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from .config import DATABASE_URL


def _normalize_db_url(url: str) -> str:
    """Normalize common Postgres URLs to the psycopg2 driver form."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


if DATABASE_URL:
    DB_URL = _normalize_db_url(DATABASE_URL)
else:
    DB_URL = f"sqlite:///{(Path(__file__).resolve().parents[1] / 'eventcal.db')}"

is_sqlite = DB_URL.startswith("sqlite")

engine = create_engine(
    DB_URL,
    echo=False,
    future=True,
    pool_pre_ping=True,
    connect_args=({} if not is_sqlite else {"check_same_thread": False}),
)



def enable_sqlite_foreign_keys(target: Engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""

    @event.listens_for(target, "connect")
    def _fk_pragma(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


if is_sqlite:
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


def init_db(target: Engine | None = None) -> None:
    """Create missing tables directly (local sqlite dev; prod uses Alembic)."""
    from . import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind=target or engine)


def get_db() -> Generator:
    """
    FastAPI dependency that yields a session per request
    and guarantees it is closed afterwards.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
