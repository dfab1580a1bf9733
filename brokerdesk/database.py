"""Database configuration and session management."""

from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from brokerdesk.config import Settings, settings
from brokerdesk.connection import ConnectionManager
from brokerdesk.logger import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def create_engine(config: Settings = settings) -> AsyncEngine:
    """Build the pooled async engine from settings."""
    options: dict[str, object] = {
        "echo": config.debug,
        "pool_pre_ping": True,
    }
    if not config.database_url.startswith("sqlite"):
        options.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_recycle=config.db_pool_recycle_seconds,
        )
    return create_async_engine(config.database_url, **options)


def create_connection_manager(
    engine: AsyncEngine | None = None,
    config: Settings = settings,
) -> ConnectionManager:
    return ConnectionManager(
        engine or create_engine(config),
        retries=config.db_connect_retries,
        initial_delay=config.db_connect_initial_delay,
    )


def get_connection_manager(request: Request) -> ConnectionManager:
    """Dependency returning the manager owned by the running app."""
    return request.app.state.connection_manager


async def get_db(
    manager: ConnectionManager = Depends(get_connection_manager),
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database session.

    Goes through the connection manager first so an unreachable database
    surfaces as ``DatabaseConnectivityError`` (503) before any query runs.
    """
    await manager.get_connection()
    async with manager.session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """
    Schema is managed by migrations outside this service; nothing is created
    here, startup only records that the step ran.
    """
    logger.info("Database initialized (schema managed by migrations)")
