"""Database connection and session management."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import DateTime, event, text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from rovel.errors import StoreUnavailable
from rovel.observability.metrics import metrics

logger = logging.getLogger("rovel.db")


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend.

    SQLite drops tzinfo on the way in and returns naive values; PostgreSQL
    returns aware values in the session timezone. Both come back as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to a UTC column")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class StoreState(str, Enum):
    """Connection state of the durable store."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    LOST = "lost"


def _attach_query_metrics(target_engine: AsyncEngine) -> None:
    """Attach SQLAlchemy event listeners for query metrics."""
    sync_engine = target_engine.sync_engine
    if getattr(sync_engine, "_rovel_metrics_attached", False):
        return

    @event.listens_for(sync_engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_time = conn.info.pop("query_start_time", None)
        if start_time is None:
            return
        duration_ms = (time.perf_counter() - start_time) * 1000.0
        metrics.inc_counter("db.query.count")
        metrics.observe("db.query.duration_ms", duration_ms)

    sync_engine._rovel_metrics_attached = True


def _is_connection_error(exc: DBAPIError) -> bool:
    return bool(exc.connection_invalidated) or isinstance(exc, (OperationalError, InterfaceError))


class Database:
    """Handle to the durable store.

    Created disconnected; services receive it at construction time and every
    unit of work goes through ``session()``, which refuses to run until
    ``connect()`` has succeeded.
    """

    def __init__(
        self,
        url: str,
        echo: bool = False,
        timeout_seconds: float = 5.0,
    ):
        self.url = url
        self.echo = echo
        self.timeout_seconds = timeout_seconds
        self.state = StoreState.DISCONNECTED
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_connected(self) -> bool:
        return self.state == StoreState.CONNECTED

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StoreUnavailable("Database not connected")
        return self._engine

    def _create_engine(self) -> AsyncEngine:
        kwargs: dict[str, Any] = {"echo": self.echo, "pool_pre_ping": True}
        if self.url.startswith("postgresql"):
            kwargs.update(
                pool_size=20,
                max_overflow=10,
                pool_timeout=self.timeout_seconds,
                connect_args={"timeout": self.timeout_seconds},
            )
        else:
            kwargs["connect_args"] = {"timeout": self.timeout_seconds}
        return create_async_engine(self.url, **kwargs)

    async def connect(self, max_attempts: int = 1, retry_delay_seconds: float = 0.0) -> None:
        """Connect with linear backoff; raise StoreUnavailable once attempts run out."""
        if self._engine is None:
            self._engine = self._create_engine()
            _attach_query_metrics(self._engine)
            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

        for attempt in range(1, max_attempts + 1):
            try:
                async with self._engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            except (DBAPIError, OSError) as e:
                logger.warning(
                    f"Store connection attempt {attempt}/{max_attempts} failed: {e}"
                )
                if attempt < max_attempts:
                    await asyncio.sleep(retry_delay_seconds * attempt)
                continue

            self.state = StoreState.CONNECTED
            logger.info("Connected to store")
            return

        self.state = StoreState.DISCONNECTED
        raise StoreUnavailable(
            f"Failed to connect to store after {max_attempts} attempts"
        )

    async def create_schema(self) -> None:
        """Create tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self.state = StoreState.DISCONNECTED

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Unit of work: commit on success, roll back on error.

        Connection-level driver errors surface as StoreUnavailable and mark
        the store as lost until the next successful commit.
        """
        if self.state == StoreState.DISCONNECTED or self._session_factory is None:
            raise StoreUnavailable()

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except DBAPIError as e:
                await session.rollback()
                if _is_connection_error(e):
                    self.state = StoreState.LOST
                    logger.error(f"Store connection lost: {e}")
                    raise StoreUnavailable("Database connection lost") from e
                raise
            except OSError as e:
                await session.rollback()
                self.state = StoreState.LOST
                logger.error(f"Store connection lost: {e}")
                raise StoreUnavailable("Database connection lost") from e
            except Exception:
                await session.rollback()
                raise

        if self.state == StoreState.LOST:
            self.state = StoreState.CONNECTED
            logger.info("Store connection recovered")
