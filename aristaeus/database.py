"""
Database Connection Module
Owns the SQLAlchemy async engine and the transactional session scope.

A Database instance is created by the process entry point (the FastAPI
lifespan, a script, a test fixture) and passed explicitly into every
core operation. There is no module-level engine.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from aristaeus.core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Base class for all our models
class Base(DeclarativeBase):
    pass


class Database:
    """
    Storage handle: an engine plus a session factory.

    Usage:
        database = Database("postgresql+psycopg://...")
        async with database.transaction() as session:
            session.add(order)
        # committed here, or rolled back if the block raised
    """

    def __init__(
        self,
        url: str,
        echo: bool = False,
        isolation_level: Optional[str] = None,
        **engine_kwargs: Any,
    ):
        if isolation_level:
            engine_kwargs["isolation_level"] = isolation_level

        self.url = url
        self.engine = create_async_engine(url, echo=echo, **engine_kwargs)

        # Objects remain accessible after commit
        self.session_maker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build the handle described by the application settings."""
        engine_kwargs: dict[str, Any] = {}
        if not settings.database_url.startswith("sqlite"):
            engine_kwargs["pool_size"] = settings.database_pool_size
            engine_kwargs["max_overflow"] = settings.database_max_overflow

        return cls(
            settings.database_url,
            echo=settings.database_echo,
            isolation_level=settings.database_isolation_level,
            **engine_kwargs,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Scoped transactional session.

        Commits when the block exits normally and rolls back on any
        exception, which is re-raised to the caller.
        """
        async with self.session_maker() as session:
            async with session.begin():
                yield session

    async def run_in_transaction(
        self,
        fn: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Run ``fn(session)`` inside one transaction and return its result."""
        async with self.transaction() as session:
            return await fn(session)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Plain session for read-only work."""
        async with self.session_maker() as session:
            yield session

    async def create_all(self) -> None:
        """
        Create all tables in database.
        Called once at application startup.
        """
        # Register the mapped classes on Base.metadata
        import aristaeus.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def drop_all(self) -> None:
        """Drop every table (seeding and tests)."""
        import aristaeus.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


def get_db(request: Request) -> Database:
    """
    Dependency injection for FastAPI routes.
    Returns the Database owned by the running application.
    """
    return request.app.state.db
