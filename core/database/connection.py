# Async SQLAlchemy connection management
import time
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import event
from contextlib import asynccontextmanager
from typing import AsyncIterator

from core.logging import get_database_logger_safe, get_error_logger_safe

db_logger = get_database_logger_safe("database_manager")
error_logger = get_error_logger_safe("database_manager")

# The base class for all SQLAlchemy models
Base = declarative_base()

SLOW_QUERY_MS = 500


class DatabaseManager:
    """Manages the async engine and sessions for the account store.

    Money columns are Numeric with DECIMAL_SCALE places. Postgres via asyncpg
    stores them exactly; the sqlite dialect used in tests converts Numeric
    through float, so values read back there are only equal at the stored
    scale and to float precision, not digit for digit.
    """

    def __init__(self, db_url: str, echo: bool = False):
        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if not db_url.startswith("sqlite"):
            engine_kwargs.update(pool_size=5, max_overflow=10, pool_recycle=3600)
        self._engine = create_async_engine(db_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
            class_=AsyncSession
        )
        self._setup_database_logging()

    @property
    def engine(self):
        return self._engine

    async def init(self, create_schema: bool = True):
        """Create tables for development and tests; deployments may manage schema externally"""
        if create_schema:
            # Import models so their tables are registered on Base.metadata
            from core.database import models  # noqa: F401
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            db_logger.info("Database schema ensured (create_all)")

    async def shutdown(self):
        """Closes the database connection pool"""
        await self._engine.dispose()
        db_logger.info("Database connection pool closed")

    def _setup_database_logging(self):
        """Setup SQLAlchemy event listeners for slow query logging"""

        @event.listens_for(self._engine.sync_engine, "before_cursor_execute")
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            context._query_start_time = time.time()

        @event.listens_for(self._engine.sync_engine, "after_cursor_execute")
        def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            if hasattr(context, '_query_start_time'):
                execution_time = (time.time() - context._query_start_time) * 1000
                if execution_time > SLOW_QUERY_MS:
                    db_logger.warning("Slow database query detected",
                                      execution_time_ms=execution_time,
                                      query_type=statement.split()[0].upper() if statement else "UNKNOWN")

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Provides a session WITHOUT auto-commit; callers own transaction boundaries."""
        async with self._session_factory() as session:
            try:
                yield session
            except Exception as session_error:
                await session.rollback()
                error_logger.error("Database session error with rollback",
                                   error=str(session_error))
                raise
