"""Test fixtures and configuration."""

import logging
import os
import sys
import tempfile

# Settings are read at import time; pin them before importing brokerdesk.
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-with-at-least-32-bytes"
os.environ["UPLOAD_ROOT"] = tempfile.mkdtemp(prefix="brokerdesk-uploads-")
for _name in ("S3_ACCESS_KEY", "S3_SECRET_KEY", "S3_ENDPOINT", "STORAGE_CONNECTION_STRING"):
    os.environ.pop(_name, None)

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
import structlog  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from brokerdesk.connection import ConnectionManager  # noqa: E402
from brokerdesk.database import Base  # noqa: E402
from brokerdesk.main import create_app  # noqa: E402
from brokerdesk.models import User, UserRole  # noqa: E402
from brokerdesk.security import create_access_token, hash_password  # noqa: E402
from brokerdesk.services.storage import DocumentStorage  # noqa: E402
from brokerdesk.services.storage_backends import LocalBackend  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def connection_manager(db_engine):
    return ConnectionManager(db_engine, retries=2, initial_delay=0)


@pytest_asyncio.fixture
async def db(connection_manager):
    async with connection_manager.session_maker() as session:
        yield session


@pytest.fixture
def upload_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def storage(upload_root):
    return DocumentStorage(LocalBackend(upload_root))


@pytest.fixture
def upstream_handler():
    """Answers the proxy's outbound fetches; tests override as needed."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    return handler


@pytest_asyncio.fixture
async def http_client(upstream_handler):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream_handler)) as client:
        yield client


@pytest.fixture
def app(connection_manager, storage, http_client):
    return create_app(
        connection_manager=connection_manager,
        storage=storage,
        http_client=http_client,
    )


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def create_user(
    db,
    *,
    role: UserRole = UserRole.ADMIN,
    email: str | None = None,
    is_active: bool = True,
) -> User:
    user = User(
        email=email or f"{role.value}@brokerdesk.lk",
        hashed_password=hash_password(TEST_PASSWORD),
        first_name=role.value.title(),
        last_name="Tester",
        role=role.value,
        is_active=is_active,
    )
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_user(db):
    return await create_user(db, role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def manager_user(db):
    return await create_user(db, role=UserRole.MANAGER)


@pytest_asyncio.fixture
async def sales_user(db):
    return await create_user(db, role=UserRole.SALES)


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def sales_headers(sales_user):
    return auth_headers(sales_user)
