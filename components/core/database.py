"""Core classes and mixins for DB connections"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Optional, TypeVar, cast
from typing import Callable, AsyncContextManager

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from components.core import config
from components.core.exceptions import StoreTimeout

settings = config.get_settings()
Base = declarative_base()
SessionMaker = Callable[[], AsyncContextManager[AsyncSession]]
T = TypeVar("T")


async def bounded(operation: Awaitable[T], what: str = "store call") -> T:
    """
    Await a store round-trip under STORE_TIMEOUT_SECONDS.

    On expiry the effect of the call is unknown; StoreTimeout tells the
    caller to re-query before retrying.
    """
    try:
        return await asyncio.wait_for(operation, timeout=settings.STORE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError as e:
        raise StoreTimeout(what) from e


class DatabaseManager:
    def __init__(self, engine: Optional[AsyncEngine] = None) -> None:
        """Initialize DatabaseManager with optional engine for testing."""
        self.engine = engine or self._create_engine()

    def _create_engine(self) -> AsyncEngine:
        """Create async engine for the configured database."""
        url = settings.async_db_url
        options: dict[str, Any] = {"echo": False}
        if not url.startswith("sqlite"):
            options.update(
                pool_pre_ping=True,  # Enable connection health checks
                pool_size=5,
                max_overflow=10,
            )
        return create_async_engine(url, **options)

    def get_session(self) -> SessionMaker:
        """Returns SessionMaker for database sessions."""
        if not self.engine:
            raise ValueError("Database engine wasn't initialized")

        return cast(
            SessionMaker,
            sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autocommit=False,
                autoflush=False,
            ),
        )

    async def create_all(self) -> None:
        """Create missing tables for all registered models."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def get_db(self) -> AsyncContextManager[AsyncSession]:
        """Get database session context manager."""
        async_session = self.get_session()
        async with async_session() as session:
            try:
                yield session
            finally:
                await session.close()
