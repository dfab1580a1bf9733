"""Brokerdesk Backend - FastAPI Application."""

import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import httpx
import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from brokerdesk.config import settings
from brokerdesk.connection import ConnectionManager, DatabaseConnectivityError, is_retryable
from brokerdesk.database import create_connection_manager, init_db
from brokerdesk.deps import Connections, Storage
from brokerdesk.logger import configure_logging, get_logger, log_exception
from brokerdesk.routers import auth, clients, documents
from brokerdesk.services.storage import DocumentStorage, StorageError, build_storage

# Initialize logging early
configure_logging()
logger = get_logger(__name__)

VERSION = "0.1.0"
RETRY_AFTER_SECONDS = 5


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan.

    Startup never fails on an unreachable database or bucket: both are
    logged and retried lazily by the first request that needs them.
    """
    await init_db()

    storage: DocumentStorage = app.state.storage
    try:
        await storage.ensure_container()
    except StorageError as exc:
        log_exception(logger, exc, "Storage container check failed", level="warning")

    connections: ConnectionManager = app.state.connection_manager
    if await connections.keep_warm():
        logger.info("Database reachable at startup")

    logger.info("Application started", version=VERSION, storage_mode=storage.mode)
    yield

    await app.state.http_client.aclose()
    await connections.dispose()
    logger.info("Application shutting down")


async def logging_middleware(request: Request, call_next: Any) -> Response:
    """Middleware to inject Request-ID and log request details."""
    request_id = request.headers.get("X-Request-ID", str(uuid4()))

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    start_time = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        duration = time.perf_counter() - start_time
        logger.exception(
            "HTTP Request Failed",
            duration_ms=round(duration * 1000, 2),
            error=str(exc),
        )
        raise

    duration = time.perf_counter() - start_time
    logger.info(
        "HTTP Request",
        status_code=response.status_code,
        duration_ms=round(duration * 1000, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


def _request_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("request_id")


async def connectivity_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Database unreachable after retries: tell the client to come back."""
    logger.error(
        "Database unavailable",
        error=str(exc),
        attempts=getattr(exc, "attempts", None),
    )
    content: dict[str, Any] = {
        "detail": "Service temporarily unavailable. Please try again shortly.",
        "request_id": _request_id(),
    }
    if not settings.is_production:
        content["error"] = str(exc)
    return JSONResponse(
        status_code=503,
        content=content,
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


async def database_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """A query that loses its connection is answered like a failed connect.

    The cached connection state is dropped so the next request reconnects.
    """
    if not is_retryable(exc):
        return await global_exception_handler(request, exc)
    request.app.state.connection_manager.on_pool_error(exc)
    return await connectivity_exception_handler(request, exc)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler to ensure JSON response."""
    if settings.is_production:
        detail = "An internal server error occurred. Please try again later."
        trace = None
    else:
        detail = str(exc)
        trace = "".join(traceback.format_exception(exc))

    return JSONResponse(
        status_code=500,
        content={
            "detail": detail,
            "trace": trace,
            "request_id": _request_id(),
        },
    )


async def health_check(connections: Connections, storage: Storage) -> JSONResponse:
    """Check database liveness and report pool and storage state.

    Returns 200 when the database answers, 503 otherwise.
    """
    database_ok = await connections.keep_warm()
    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "healthy" if database_ok else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": VERSION,
            "checks": {"database": database_ok},
            "pool": connections.pool_stats(),
            "storage": {"mode": storage.mode},
        },
    )


def create_app(
    *,
    connection_manager: ConnectionManager | None = None,
    storage: DocumentStorage | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Build the application; collaborators default to ones built from settings."""
    app = FastAPI(
        title="Brokerdesk API",
        description="Insurance brokerage back office: clients, policies and documents",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.connection_manager = connection_manager or create_connection_manager()
    app.state.storage = storage or build_storage(settings)
    app.state.http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(30.0))

    app.middleware("http")(logging_middleware)
    app.add_exception_handler(DatabaseConnectivityError, connectivity_exception_handler)
    app.add_exception_handler(DBAPIError, database_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    app.include_router(auth.router)
    app.include_router(clients.router)
    app.include_router(documents.router)
    app.add_api_route("/health", health_check, methods=["GET"], tags=["health"])
    return app


app = create_app()
