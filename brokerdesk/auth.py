"""Authentication helpers for request-scoped user context."""

from collections.abc import Awaitable, Callable
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from brokerdesk.database import get_db
from brokerdesk.logger import get_logger
from brokerdesk.models import User, UserRole
from brokerdesk.security import decode_access_token

logger = get_logger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def _credentials_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the current user from the JWT bearer token."""
    payload = decode_access_token(token)
    if not payload:
        raise _credentials_error("Could not validate credentials")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise _credentials_error("Token missing subject")

    try:
        user_uuid = UUID(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format in token")

    user = await db.get(User, user_uuid)
    if user is None:
        raise _credentials_error("User not found")
    if not user.is_active:
        raise _credentials_error("Account is disabled")

    return user


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """Build a dependency that only admits users holding one of ``roles``."""
    allowed = {role.value for role in roles}

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.warning(
                "Role not permitted",
                user_id=str(user.id),
                role=user.role,
                allowed=sorted(allowed),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return dependency
