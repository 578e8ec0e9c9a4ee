"""Async SQLite storage backend for the solution cache (SQLModel + SQLAlchemy 2.0)."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.config import Settings
from core.logging import get_logger
from models.cache import SolutionCacheEntry  # noqa: F401 - registers the table

logger = get_logger(__name__)


class Database:
    """Owns the engine and hands out sessions to the cache store."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.async_session: Optional[async_sessionmaker] = None

    def _engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"echo": self.settings.database_echo}
        if self.settings.is_memory_database:
            # One shared connection, otherwise every checkout sees an empty database
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        else:
            options["pool_size"] = self.settings.database_pool_size
            options["max_overflow"] = self.settings.database_max_overflow
        return options

    async def startup(self) -> None:
        """Open the engine and create the cache table if missing."""
        if self.is_started:
            return
        try:
            self.engine = create_async_engine(self.settings.database_url, **self._engine_options())
            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )
            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
        except Exception as e:
            logger.error("Database startup failed", url=self.settings.database_url, error=str(e))
            raise

        logger.info("Database ready", url=self.settings.database_url)

    async def shutdown(self) -> None:
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self.async_session = None
        logger.info("Database connections closed")

    @property
    def is_started(self) -> bool:
        return self.async_session is not None

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; uncommitted work is rolled back on error."""
        if self.async_session is None:
            raise RuntimeError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
