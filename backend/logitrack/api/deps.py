"""API dependencies - authentication and authorization"""

from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from logitrack.core.database import get_db
from logitrack.core.exceptions import AuthenticationError, AuthorizationError, BaseAPIException
from logitrack.core.security import TokenKind, verify_token
from logitrack.models.user import User, UserRole
from logitrack.services.user_service import user_service

# HTTP Bearer token scheme; a missing header is reported as 401 by get_current_user
security = HTTPBearer(auto_error=False)

ADMIN_ONLY = frozenset({UserRole.ADMIN})
MANAGEMENT = frozenset({UserRole.ADMIN, UserRole.MANAGER})


def authenticate_access_token(db: Session, token: Optional[str]) -> User:
    """
    Resolve an access token to an active user

    Shared by the HTTP gate and the realtime handshake.

    Raises:
        AuthenticationError: Missing, invalid or expired token, unknown or
            deactivated user
    """
    if not token:
        raise AuthenticationError("Not authorized to access this route")

    try:
        payload = verify_token(token, TokenKind.ACCESS)
    except BaseAPIException as exc:
        raise AuthenticationError(exc.message)

    user = user_service.get_user_by_id(db, int(payload["sub"]))
    if not user:
        raise AuthenticationError("User no longer exists")
    if not user.is_active:
        raise AuthenticationError("User account is deactivated")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from the bearer token

    Args:
        credentials: HTTP Bearer credentials, None when the header is absent
        db: Database session

    Returns:
        Current user

    Raises:
        AuthenticationError: If the token is missing or invalid, or the user is gone or disabled
    """
    token = credentials.credentials if credentials else None
    return authenticate_access_token(db, token)


def require_roles(*roles: UserRole) -> Callable[..., User]:
    """
    Build a dependency admitting only the given roles

    Roles must be ``UserRole`` members; anything else fails when the route
    is declared, not when it is called.
    """
    if not roles:
        raise ValueError("require_roles needs at least one role")
    for role in roles:
        if not isinstance(role, UserRole):
            raise TypeError(f"Expected UserRole, got {role!r}")
    allowed = frozenset(roles)

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError(f"Role '{current_user.role.value}' not authorized")
        return current_user

    role_checker.allowed_roles = allowed
    return role_checker


get_current_admin_user = require_roles(*ADMIN_ONLY)
get_current_manager_user = require_roles(*MANAGEMENT)


def get_chat_hub(request: Request):
    """Realtime hub attached to the application at startup"""
    return request.app.state.chat_hub
