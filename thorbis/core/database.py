"""Async engine and session factories, created lazily from settings."""

from __future__ import annotations

import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from thorbis.core.config import settings
from thorbis.core.exceptions import BackendUnavailableError
from thorbis.core.geo import great_circle_distance_km

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _sqlite_great_circle_km(lat1, lng1, lat2, lng2):
    if None in (lat1, lng1, lat2, lng2):
        return None
    return great_circle_distance_km(lat1, lng1, lat2, lng2)


_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def _build_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        # One shared connection so an in-memory database survives across sessions.
        engine = create_async_engine(
            url,
            echo=settings.DATABASE_ECHO,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _register_sqlite_functions(dbapi_connection, _record):
            dbapi_connection.create_function("great_circle_km", 4, _sqlite_great_circle_km)

        return engine

    return create_async_engine(url, echo=settings.DATABASE_ECHO, pool_pre_ping=True)


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        if not settings.DATABASE_URL:
            raise BackendUnavailableError("DATABASE_URL is not configured")
        _engine = _build_engine(settings.DATABASE_URL)
        logger.info("Database engine created for dialect %s", _engine.dialect.name)
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the session factory, raising BackendUnavailableError when no backend is configured."""
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = async_sessionmaker(get_engine(), expire_on_commit=False, autoflush=False)
    return _sessionmaker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_sessionmaker()() as session:
        yield session


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
