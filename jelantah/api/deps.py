from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jelantah.database import get_db
from jelantah.core.exceptions import AuthenticationError, PermissionDeniedError
from jelantah.core.security import verify_access_token
from jelantah.models.user import User, UserRole


logger = logging.getLogger(__name__)

# Missing credentials are reported as 401 by get_current_user, not 403 by FastAPI
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.

    The token only carries the user id; the role always comes from the
    database row.
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    user_id = verify_access_token(credentials.credentials)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise AuthenticationError("Could not validate credentials")

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise AuthenticationError("Could not validate credentials")

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"User {user_id} from token not found")
        raise AuthenticationError("Could not validate credentials")

    if not user.is_active:
        raise PermissionDeniedError("User account is deactivated")

    return user


def require_roles(*roles: UserRole):
    """
    Dependency factory restricting an endpoint to the given roles.

    Usage:
        @router.put("/", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    """
    allowed = {role.value for role in roles}

    async def role_checker(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError(
                f"Role {user.role} is not allowed to perform this action",
                reason="ROLE_NOT_ALLOWED",
            )
        return user

    return role_checker


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
