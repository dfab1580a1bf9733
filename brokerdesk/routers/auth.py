"""Authentication API router."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from brokerdesk.auth import require_roles
from brokerdesk.deps import Connections, CurrentUser, DbSession
from brokerdesk.logger import get_logger
from brokerdesk.models import User, UserRole
from brokerdesk.schemas.auth import AuthResponse, LoginRequest, UserCreate, UserResponse
from brokerdesk.security import create_access_token, hash_password, verify_password
from brokerdesk.utils.exceptions import raise_conflict, raise_forbidden, raise_unauthorized

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/login", response_model=AuthResponse)
async def login(
    request: Request,
    data: LoginRequest,
    connections: Connections,
    db: DbSession,
) -> AuthResponse:
    """Login with email and password.

    The database is pinged first so a dropped connection answers 503
    instead of looking like bad credentials.
    """
    await connections.ensure_connection()

    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(data.password, user.hashed_password):
        logger.warning(
            "Failed login attempt",
            client_ip=_client_ip(request),
            email_domain=data.email.split("@")[-1],
        )
        raise_unauthorized("Invalid email or password")

    if not user.is_active:
        logger.warning("Login attempt on disabled account", user_id=str(user.id))
        raise_forbidden("Account is disabled")

    user.last_login_at = datetime.now(UTC)
    await db.commit()
    await db.refresh(user)

    logger.info("User logged in", user_id=str(user.id), role=user.role)
    access_token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return AuthResponse(access_token=access_token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def read_current_user(user: CurrentUser) -> UserResponse:
    """Return the authenticated user's profile."""
    return UserResponse.model_validate(user)


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def create_user(data: UserCreate, db: DbSession) -> UserResponse:
    """Create a staff account (admin only)."""
    result = await db.execute(select(User.id).where(User.email == data.email))
    if result.scalar_one_or_none() is not None:
        raise_conflict("Email already registered")

    user = User(
        email=data.email,
        hashed_password=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role.value,
        phone_number=data.phone_number,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        # Another request created the same email in between
        await db.rollback()
        raise_conflict("Email already registered", cause=exc)
    await db.refresh(user)

    logger.info("User created", user_id=str(user.id), role=user.role)
    return UserResponse.model_validate(user)
