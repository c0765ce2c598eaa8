"""
Async engine and session lifecycle for the order database.

One engine per process, created lazily from settings. Request handlers get a
session through ``get_db``; background work such as the outbox dispatcher
opens its own with ``get_session``. ``execute_with_retry`` wraps operations
that should survive a dropped connection.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from dulceria.core.config import get_settings
from dulceria.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

_TRANSIENT_MESSAGE_MARKERS = (
    "connection refused",
    "connection reset",
    "connection is closed",
    "could not connect",
    "timeout",
    "timed out",
    "terminating connection",
)


def _convert_database_url_to_async(url: str) -> str:
    """Convert a PostgreSQL URL to use the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine() -> AsyncEngine:
    """
    Build the asyncpg engine from settings.

    The test environment uses NullPool so that each test gets a fresh
    connection and no pool state leaks between event loops.
    """
    settings = get_settings()
    database_url = _convert_database_url_to_async(settings.database_url)

    engine_kwargs: dict[str, Any] = {
        "echo": settings.debug,
        "pool_pre_ping": True,
        "connect_args": {
            "server_settings": {"application_name": settings.app_name},
            "command_timeout": 15,
            "timeout": 15,
        },
    }

    if settings.environment == "test":
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=1800,
        )

    engine = create_async_engine(database_url, **engine_kwargs)

    logger.info(
        "Database engine created",
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        environment=settings.environment,
    )

    return engine


def get_engine() -> AsyncEngine:
    """Return the process engine, creating it on first use."""
    global _engine

    if _engine is None:
        try:
            _engine = create_engine()
        except Exception as e:
            logger.error(
                "Database engine could not be built",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeError(f"Cannot build database engine: {e}") from e

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit so responses can be built from them."""
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.debug("Session factory ready")

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Unit of work: commit when the block exits cleanly, roll back otherwise."""
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(
            "Session rolled back",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; see ``DatabaseSession`` in ``dulceria.api.deps``."""
    async with get_session() as session:
        yield session


def is_transient_error(error: BaseException) -> bool:
    """
    Decide whether a database error is worth retrying.

    Connection-level failures (refused, reset, timed out, dropped) are
    transient. Constraint violations, programming errors and data errors
    are not.
    """
    if isinstance(error, (ConnectionError, asyncio.TimeoutError, TimeoutError)):
        return True

    if isinstance(error, (OperationalError, InterfaceError)):
        return True

    if isinstance(error, DBAPIError):
        if error.connection_invalidated:
            return True
        message = str(error.orig or error).lower()
        return any(marker in message for marker in _TRANSIENT_MESSAGE_MARKERS)

    return False


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    operation_name: str,
    max_attempts: Optional[int] = None,
    initial_delay: Optional[float] = None,
) -> T:
    """
    Run a database operation, retrying transient failures with exponential backoff.

    Non-transient errors propagate on first occurrence. After the final
    attempt the last transient error is re-raised.

    Args:
        operation: Zero-argument coroutine factory executing the work
        operation_name: Name used in log events
        max_attempts: Attempt ceiling (defaults to settings.db_retry_attempts)
        initial_delay: First backoff delay in seconds (defaults to settings.db_retry_delay)
    """
    settings = get_settings()
    attempts = max_attempts or settings.db_retry_attempts
    delay = settings.db_retry_delay if initial_delay is None else initial_delay

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_transient_error(e):
                raise

            if attempt >= attempts:
                logger.error(
                    "Database operation failed after all retries",
                    operation=operation_name,
                    attempts=attempts,
                    error=str(e),
                )
                raise

            backoff = delay * (2 ** (attempt - 1))
            logger.warning(
                "Transient database error, retrying",
                operation=operation_name,
                attempt=attempt,
                max_attempts=attempts,
                backoff_seconds=backoff,
                error=str(e),
            )
            await asyncio.sleep(backoff)

    raise RuntimeError(f"{operation_name} did not run")


async def check_database_health() -> bool:
    """
    Check database connectivity with retry on transient failures.

    Returns:
        True if a trivial query succeeds, False otherwise
    """

    async def ping() -> None:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await execute_with_retry(ping, "health_check")
        return True
    except Exception as e:
        logger.error(
            "Database health check failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False


async def close_database_connections() -> None:
    global _engine, _session_factory

    if _engine is not None:
        try:
            await _engine.dispose()
            logger.info("Database engine disposed")
        finally:
            _engine = None
            _session_factory = None
