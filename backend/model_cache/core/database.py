"""
Database Connection Management

Async engine and session factory for the record store, with connection
retry and exponential backoff on startup.
"""

from typing import Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings, get_settings

logger = structlog.get_logger()


class DatabaseManager:
    """Owns the async engine and session factory used by the record store."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    def _engine_kwargs(self) -> dict:
        kwargs = {"echo": self.settings.DEBUG, "pool_pre_ping": True}
        if not self.settings.DATABASE_URL.startswith("sqlite"):
            kwargs["pool_size"] = self.settings.DATABASE_POOL_SIZE
        return kwargs

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((OperationalError, ConnectionError)),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            "Database connection retry",
            attempt=retry_state.attempt_number,
            wait_time=retry_state.next_action.sleep,
        ),
    )
    async def _check_connection(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def initialize(self) -> async_sessionmaker[AsyncSession]:
        """
        Create the engine and verify connectivity.

        Returns:
            Session factory bound to the engine

        Raises:
            RuntimeError: If DATABASE_URL is not configured
        """
        if self.session_factory is not None:
            return self.session_factory

        if not self.settings.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not configured")

        self.engine = create_async_engine(
            self.settings.DATABASE_URL, **self._engine_kwargs()
        )

        try:
            await self._check_connection()
        except Exception as e:
            logger.error("Database initialization failed", error=str(e), exc_info=True)
            await self.engine.dispose()
            self.engine = None
            raise

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        logger.info("Database initialized", pool_size=self.settings.DATABASE_POOL_SIZE)
        return self.session_factory

    async def close(self) -> None:
        """Close database connections and cleanup resources."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None

            logger.info("Database connections closed")
