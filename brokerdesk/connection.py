"""Resilient access to the pooled database engine.

``ConnectionManager`` hides transient network failures of the hosted database
from request handlers. It owns a ``ConnectionState``, shares a single in-flight
connect attempt between concurrent callers, retries with exponential backoff,
and listens to engine/pool error events so the state flips back to
``DISCONNECTED`` before the next request arrives.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import ExceptionContext
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from brokerdesk.logger import get_logger

logger = get_logger(__name__)

_RETRYABLE_TYPES: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    PoolTimeoutError,
    OSError,
    asyncio.TimeoutError,
)

# SQLSTATE classes: 08 connection exception, 28 invalid authorization,
# 3D invalid catalog name, 40001 serialization failure, 40P01 deadlock.
_RETRYABLE_SQLSTATES = ("40001", "40P01")
_FATAL_SQLSTATE_PREFIXES = ("28", "3D")


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class DatabaseConnectivityError(Exception):
    """Raised when the database stays unreachable after the retry budget."""

    def __init__(
        self,
        message: str,
        *,
        last_error: BaseException | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


@dataclass
class ConnectionState:
    """Process-wide connection flags owned by one ``ConnectionManager``."""

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    last_error: BaseException | None = None
    inflight: "asyncio.Task[None] | None" = None
    connect_attempts: int = 0

    @property
    def is_ready(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED and self.last_error is None

    def mark_connecting(self, task: "asyncio.Task[None]") -> None:
        self.status = ConnectionStatus.CONNECTING
        self.inflight = task

    def mark_connected(self) -> None:
        self.status = ConnectionStatus.CONNECTED
        self.last_error = None
        self.inflight = None

    def mark_failed(self, exc: BaseException) -> None:
        self.status = ConnectionStatus.DISCONNECTED
        self.last_error = exc

    def reset(self, exc: BaseException | None = None) -> None:
        self.status = ConnectionStatus.DISCONNECTED
        self.last_error = exc
        self.inflight = None


def _sqlstate(exc: BaseException) -> str | None:
    for candidate in (getattr(exc, "orig", None), exc.__cause__, exc):
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            value = getattr(candidate, attr, None)
            if isinstance(value, str) and value:
                return value
    return None


def is_retryable(exc: BaseException) -> bool:
    """Return True for network, timeout and deadlock class failures."""
    state = _sqlstate(exc)
    if state:
        if state.startswith(_FATAL_SQLSTATE_PREFIXES):
            return False
        if state.startswith("08") or state in _RETRYABLE_SQLSTATES:
            return True

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, _RETRYABLE_TYPES):
        return True

    message = str(exc).lower()
    return "deadlock" in message or "timeout" in message or "timed out" in message


def _consume_result(task: "asyncio.Task[None]") -> None:
    # Keeps asyncio from reporting "exception was never retrieved" when every
    # waiter on a shared attempt was cancelled.
    if not task.cancelled():
        task.exception()


class ConnectionManager:
    """Connection-resilience wrapper around an ``AsyncEngine``."""

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        retries: int = 3,
        initial_delay: float = 1.0,
    ) -> None:
        self.engine = engine
        self.retries = retries
        self.initial_delay = initial_delay
        self.state = ConnectionState()
        self.session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._attach_listeners()

    def _attach_listeners(self) -> None:
        sync_engine = self.engine.sync_engine
        event.listen(sync_engine, "handle_error", self._on_handle_error)
        # Resolves to the engine's pool; listeners carry over when dispose()
        # recreates it.
        event.listen(sync_engine, "invalidate", self._on_pool_invalidate)

    def _on_handle_error(self, context: ExceptionContext) -> None:
        if context.is_disconnect:
            self.on_pool_error(context.original_exception)

    def _on_pool_invalidate(
        self,
        dbapi_connection: Any,
        connection_record: Any,
        exception: BaseException | None,
    ) -> None:
        if exception is not None:
            self.on_pool_error(exception)

    def on_pool_error(self, exc: BaseException) -> None:
        """Force the next caller to reconnect after a pool-level failure."""
        logger.error(
            "Database pool error",
            error=str(exc),
            error_type=type(exc).__name__,
            previous_status=self.state.status.value,
        )
        self.state.reset(exc)

    async def _open(self) -> None:
        self.state.connect_attempts += 1
        connection = await self.engine.connect()
        await connection.close()

    async def _ping(self, engine: AsyncEngine) -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    def _forget(self, task: "asyncio.Task[None]") -> None:
        if self.state.inflight is task:
            self.state.inflight = None

    async def _join_or_start_attempt(self, attempt: int, attempts: int) -> None:
        task = self.state.inflight
        if task is None or task.done():
            logger.info(
                "Attempting database connection",
                attempt=attempt,
                retries=attempts,
            )
            task = asyncio.ensure_future(self._open())
            task.add_done_callback(_consume_result)
            self.state.mark_connecting(task)

        try:
            await asyncio.shield(task)
        except Exception as exc:
            self._forget(task)
            self.state.mark_failed(exc)
            raise

        if not self.state.is_ready:
            logger.info("Connected to database", attempt=attempt)
        self.state.mark_connected()

    async def get_connection(
        self,
        retries: int | None = None,
        initial_delay: float | None = None,
    ) -> AsyncEngine:
        """Return the engine once a connection has been established.

        Args:
            retries: Attempt budget, defaults to the manager's ``retries``
            initial_delay: Seconds before the second attempt; doubles each retry

        Raises:
            DatabaseConnectivityError: When every retryable attempt failed
            Exception: Non-retryable failures (auth, unknown database) as-is
        """
        if self.state.is_ready:
            return self.engine

        pending = self.state.inflight
        if pending is not None:
            try:
                await asyncio.shield(pending)
            except Exception as exc:
                self._forget(pending)
                logger.warning(
                    "Shared connection attempt failed, retrying",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            else:
                self.state.mark_connected()
                return self.engine

        attempts = max(1, self.retries if retries is None else retries)
        delay = self.initial_delay if initial_delay is None else initial_delay
        last_error: BaseException | None = None

        for attempt in range(1, attempts + 1):
            try:
                await self._join_or_start_attempt(attempt, attempts)
            except Exception as exc:
                last_error = exc
                if not is_retryable(exc):
                    logger.error(
                        "Database connection failed with non-retryable error",
                        attempt=attempt,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    raise
                logger.warning(
                    "Database connection attempt failed",
                    attempt=attempt,
                    retries=attempts,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                if attempt < attempts:
                    await asyncio.sleep(delay)
                    delay *= 2
            else:
                return self.engine

        logger.error("All database connection attempts failed", retries=attempts)
        raise DatabaseConnectivityError(
            f"Failed to connect to database after {attempts} attempts",
            last_error=last_error,
            attempts=attempts,
        ) from last_error

    async def ensure_connection(self) -> AsyncEngine:
        """Return a connected engine after a ``SELECT 1`` round trip.

        On failure the cached state is dropped so the next caller starts a
        fresh attempt instead of reusing a known-bad one.
        """
        try:
            engine = await self.get_connection()
            await self._ping(engine)
        except DatabaseConnectivityError as exc:
            self.state.reset(exc.last_error or exc)
            raise
        except Exception as exc:
            logger.error(
                "Connection health check failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self.state.reset(exc)
            if is_retryable(exc):
                raise DatabaseConnectivityError(
                    "Database health check failed",
                    last_error=exc,
                    attempts=1,
                ) from exc
            raise
        return engine

    async def keep_warm(self) -> bool:
        """Ping the database; never raises."""
        try:
            await self.ensure_connection()
        except Exception as exc:
            logger.warning(
                "Keep-alive ping failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False
        logger.debug("Keep-alive ping succeeded")
        return True

    def pool_stats(self) -> dict[str, Any]:
        """Snapshot of pool counters plus the wrapper's own flags."""
        pool = self.engine.sync_engine.pool
        stats: dict[str, Any] = {}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            counter = getattr(pool, name, None)
            if callable(counter):
                stats[name] = counter()
        stats["status"] = self.state.status.value
        stats["connected"] = self.state.is_ready
        stats["has_error"] = self.state.last_error is not None
        stats["connect_attempts"] = self.state.connect_attempts
        return stats

    async def dispose(self) -> None:
        await self.engine.dispose()
        self.state.reset()
