"""PostgreSQL connection and session management."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)


class Database:
    """
    Process-wide async engine and session factory.

    Created once at startup (see accounts.main.lifespan) and shared by every
    request; call connect() before use and disconnect() at shutdown.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    async def connect(self) -> None:
        """Create the engine and session factory. Idempotent."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, pool_pre_ping=True, echo=self.echo)
        self._sessionmaker = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database engine created")

    async def disconnect(self) -> None:
        """Dispose the engine and its pooled connections."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database engine disposed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session bound to the shared engine and close it when done."""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected; call connect() first")
        async with self._sessionmaker() as session:
            yield session

    async def check_connected(self) -> bool:
        """Run a trivial query to verify the database is reachable."""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError, RuntimeError):
            return False


def get_database(request: Request) -> Database:
    """Dependency that returns the process-wide Database from app state."""
    return request.app.state.database
