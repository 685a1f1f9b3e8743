"""
Visitas API: Database Connection Management
===========================================

What:  Async SQLAlchemy engine factory, the Connection Holder, the startup
       probe that populates it, and the FastAPI dependency that reads it.
Why:   Every request needs the engine, but the engine is only usable after
       the asynchronous handshake with MySQL succeeds. The listener may
       already be accepting requests at that point.
How:   The application factory stores an empty ConnectionHolder on app.state.
       The lifespan schedules connect_database() as a background task; it
       probes the engine with SELECT 1 and only then sets the holder.
       Handlers depend on get_engine(), which raises DatabaseUnavailableError
       while the holder is empty.

Connection Pooling Strategy:
    pool_size / max_overflow: from settings (defaults 10 + 5)
    pool_pre_ping:    validates connections before use
    pool_recycle:     below MySQL's wait_timeout so idle connections are not
                      dropped under us
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from visitas_api.config import Settings
from visitas_api.exceptions import DatabaseUnavailableError

logger = logging.getLogger(__name__)


class ConnectionHolder:
    """
    Process-wide reference to the established database engine.

    Written once by connect_database(); read by every request through
    get_engine(). Until it is set, `engine` raises DatabaseUnavailableError
    so no handler ever touches an absent connection.
    """

    def __init__(self) -> None:
        self._engine: Optional[AsyncEngine] = None

    @property
    def is_ready(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            logger.error("Database connection is not available yet")
            raise DatabaseUnavailableError()
        return self._engine

    def set(self, engine: AsyncEngine) -> None:
        """Stores an engine whose connection has already been verified."""
        self._engine = engine

    def clear(self) -> Optional[AsyncEngine]:
        """Empties the holder and returns the engine it held, if any."""
        engine, self._engine = self._engine, None
        return engine


def build_engine(settings: Settings) -> AsyncEngine:
    """Creates the async engine. No connection is opened until first use."""
    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=settings.db_pool_recycle,
        echo=settings.log_level == "DEBUG",
    )


async def _probe(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def connect_database(holder: ConnectionHolder, settings: Settings) -> bool:
    """
    Establish the database connection and publish it to the holder.

    What:    Builds the engine, verifies it with SELECT 1, then sets the holder.
    When:    Scheduled by the lifespan handler as a background task.
    Retries: tenacity retries the probe on driver/socket errors with
             exponential backoff and jitter, up to db_connect_attempts.
             This is the only retried database interaction; request-path
             procedure calls run exactly once.

    Returns:
        True when the holder was populated, False when every attempt failed.
        Failure is logged and the holder stays empty, so requests keep
        answering 500 until the process is restarted.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type((SQLAlchemyError, OSError)),
        stop=stop_after_attempt(settings.db_connect_attempts),
        wait=wait_exponential_jitter(
            initial=settings.db_connect_min_wait,
            max=settings.db_connect_max_wait,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    engine: Optional[AsyncEngine] = None
    try:
        # Unknown dialects and missing drivers fail here, before any retry
        engine = build_engine(settings)
        async for attempt in retrying:
            with attempt:
                await _probe(engine)
    except (SQLAlchemyError, OSError) as e:
        logger.error(
            "Could not connect to the database after %d attempt(s): %s",
            settings.db_connect_attempts,
            str(e),
        )
        if engine is not None:
            await engine.dispose()
        return False
    except Exception as e:
        logger.error("Database handshake failed: %s", str(e), exc_info=True)
        if engine is not None:
            await engine.dispose()
        return False

    holder.set(engine)
    logger.info("Database connection established")
    return True


async def dispose_holder(holder: ConnectionHolder) -> None:
    """
    What:  Closes all pooled connections of the held engine, if any.
    When:  Called during application shutdown (lifespan handler).
    """
    engine = holder.clear()
    if engine is not None:
        await engine.dispose()


# ── Dependencies ──────────────────────────────────────────────────────────
def get_connection_holder(request: Request) -> ConnectionHolder:
    """FastAPI dependency returning the holder created by the app factory."""
    return request.app.state.db


def get_engine(holder: ConnectionHolder = Depends(get_connection_holder)) -> AsyncEngine:
    """
    FastAPI dependency that fails fast while the connection is not ready.

    Raises:
        DatabaseUnavailableError: handled globally as HTTP 500.
    """
    return holder.engine
