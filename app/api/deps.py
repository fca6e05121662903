"""API dependencies for authentication and common operations."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.permissions import UserRole, is_admin_role
from app.core.security import verify_token
from app.database import get_db
from app.models.user import User

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "get_current_staff",
    "get_current_admin",
]

# Security scheme
security = HTTPBearer()

STAFF_ROLES = {UserRole.CLEANER.value, UserRole.DISPATCHER.value}


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    payload = verify_token(credentials.credentials, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    try:
        user = await db.get(User, UUID(user_id))
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    if not user:
        raise AuthenticationError("User not found")
    return user


async def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are active."""
    if not current_user.is_active:
        raise AuthorizationError("User account is deactivated")
    return current_user


async def get_current_staff(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    """Get current user and verify they work bookings (cleaner, dispatcher or admin)."""
    if current_user.role not in STAFF_ROLES and not is_admin_role(current_user.role):
        raise AuthorizationError("Staff access required")
    return current_user


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    """Get current user and verify they hold an admin-equivalent role."""
    if not is_admin_role(current_user.role):
        raise AuthorizationError("Admin access required")
    return current_user
