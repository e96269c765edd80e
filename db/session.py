"""
db/session.py

SQLAlchemy engine and session factory.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import resolve_database_url


def _get_bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_recycle: int = 1800
    pool_size: int = 5
    max_overflow: int = 10


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
    """
    Resolve database settings once. Raises if the URL is missing or not PostgreSQL.
    """

    url = resolve_database_url()
    if not url.startswith("postgresql"):
        raise RuntimeError("Only PostgreSQL URLs are supported.")

    return DatabaseSettings(
        url=url,
        echo=_get_bool_env("SQL_ECHO", default=False),
        pool_recycle=_get_int_env("DB_POOL_RECYCLE", 1800),
        pool_size=_get_int_env("DB_POOL_SIZE", 5),
        max_overflow=_get_int_env("DB_MAX_OVERFLOW", 10),
    )


def create_db_engine(settings: DatabaseSettings | None = None) -> Engine:
    resolved = settings or get_database_settings()
    return create_engine(
        resolved.url,
        echo=resolved.echo,
        pool_pre_ping=True,
        pool_recycle=resolved.pool_recycle,
        pool_size=resolved.pool_size,
        max_overflow=resolved.max_overflow,
    )


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Return the shared engine, creating it on first call."""
    return create_db_engine()


@lru_cache(maxsize=1)
def _get_session_factory() -> sessionmaker[Session]:
    # Import jobs hand sessions to background tasks, so loaded rows must stay
    # readable after commit.
    return sessionmaker(
        bind=get_engine(),
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


def SessionLocal() -> Session:
    """Lazy session factory. Drop-in replacement for a sessionmaker() call."""
    return _get_session_factory()()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
