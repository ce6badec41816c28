"""
Async SQLAlchemy engine, session factory, and DB lifecycle helpers.

All database access goes through ``Database.session()`` which yields an
``AsyncSession`` that commits on clean exit and rolls back on error.
SQLAlchemy failures leave the context manager as ``PersistenceError``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from meetnotes.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class Database:
    """Owns one async engine and its session factory.

    Args:
        url: Async SQLAlchemy connection string.
        engine: Prebuilt engine, used instead of ``url`` when given.
    """

    def __init__(self, url: str | None = None, *, engine: AsyncEngine | None = None) -> None:
        if engine is None:
            if not url:
                raise ValueError("Database requires a url or an engine")
            engine = create_async_engine(url, echo=False)
        self.engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield an ``AsyncSession`` that commits on success, rolls back on error."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise PersistenceError(f"Database operation failed: {exc}") from exc
            except Exception:
                await session.rollback()
                raise

    async def init(self) -> None:
        """Create all tables that do not exist yet."""
        # Import registers the mapped classes on Base.metadata.
        from meetnotes.services.storage import models_db  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready (%s)", self.engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        """Dispose the engine's connection pool."""
        await self.engine.dispose()
