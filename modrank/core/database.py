"""Async database engine, session factory, and declarative base."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

# Naming convention for constraints (Alembic auto-migration friendly)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Seconds a SQLite connection waits on a locked database before failing.
_SQLITE_BUSY_TIMEOUT = 30


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models."""

    metadata = MetaData(naming_convention=convention)


def database_url(dsn: str | Path) -> str:
    """Turn a bare file path into an aiosqlite URL; pass full URLs through."""
    dsn = str(dsn)
    if "://" in dsn:
        return dsn
    return f"sqlite+aiosqlite:///{dsn}"


def create_engine(dsn: str | Path) -> AsyncEngine:
    url = database_url(dsn)
    connect_args: dict = {}
    if url.startswith("sqlite"):
        connect_args["timeout"] = _SQLITE_BUSY_TIMEOUT
    return create_async_engine(url, echo=False, connect_args=connect_args)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
