"""Authentication routes"""

from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.orm import Session

from logitrack.core.database import get_db
from logitrack.config import settings
from logitrack.schemas.user import (
    AccessTokenPayload,
    AuthPayload,
    ForgotPasswordRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserLogin,
    UserResponse,
)
from logitrack.schemas.response import APIResponse
from logitrack.services.user_service import user_service
from logitrack.services.token_service import token_service
from logitrack.services.rate_limiter import rate_limiter
from logitrack.api.deps import get_current_user
from logitrack.models.user import User
from logitrack.core.exceptions import RateLimitExceededError
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _throttle(prefix: str, key: str, per_minute: int, per_hour: int) -> None:
    if not rate_limiter.allow(f"{prefix}:min:{key}", per_minute, 60):
        raise RateLimitExceededError("Too many attempts. Please wait a minute.")
    if not rate_limiter.allow(f"{prefix}:hour:{key}", per_hour, 3600):
        raise RateLimitExceededError("Too many attempts. Please try again later.")


@router.post("/register", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a new account and start a session

    Only the driver and staff roles may be chosen here; asking for admin or
    manager is refused with 403. Those accounts are provisioned through
    ``POST /api/users``.

    Returns:
        User and token pair
    """
    user = user_service.register(db, data)
    access_token, refresh_token = token_service.issue_token_pair(db, user)

    return APIResponse(
        message="User registered successfully",
        data=AuthPayload(
            user=UserResponse.model_validate(user),
            access_token=access_token,
            refresh_token=refresh_token,
        ),
    )


@router.post("/login", response_model=APIResponse)
def login(
    credentials: UserLogin,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Login endpoint - authenticate user and return a token pair

    The new refresh token replaces any previously stored one.
    """
    _throttle(
        "login",
        f"{_client_ip(request)}:{credentials.email}",
        settings.LOGIN_RATE_LIMIT_PER_MINUTE,
        settings.LOGIN_RATE_LIMIT_PER_HOUR,
    )

    user = user_service.authenticate_user(db, credentials.email, credentials.password)
    access_token, refresh_token = token_service.issue_token_pair(db, user)

    return APIResponse(
        message="Login successful",
        data=AuthPayload(
            user=UserResponse.model_validate(user),
            access_token=access_token,
            refresh_token=refresh_token,
        ),
    )


@router.post("/refresh-token", response_model=APIResponse)
def refresh_token(
    req: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Exchange the current refresh token for a new access token"""
    _throttle(
        "refresh",
        _client_ip(request),
        settings.RATE_LIMIT_PER_MINUTE,
        settings.RATE_LIMIT_PER_HOUR,
    )

    _, access_token = token_service.refresh_access_token(db, req.refresh_token)
    return APIResponse(
        message="Token refreshed successfully",
        data=AccessTokenPayload(access_token=access_token),
    )


@router.post("/logout", response_model=APIResponse)
def logout(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Clear the stored refresh token; repeating the call is harmless"""
    token_service.revoke(db, current_user)
    return APIResponse(message="Logout successful")


@router.get("/me", response_model=APIResponse)
def get_me(
    current_user: User = Depends(get_current_user)
):
    """Get current user information"""
    return APIResponse(
        message="User retrieved successfully",
        data=UserResponse.model_validate(current_user),
    )


@router.post("/forgot-password", response_model=APIResponse)
def forgot_password(
    req: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Issue a password reset token

    Mail delivery is not wired up; outside production the token is
    returned in the response so it can be used directly.
    """
    _throttle(
        "forgot",
        _client_ip(request),
        settings.LOGIN_RATE_LIMIT_PER_MINUTE,
        settings.LOGIN_RATE_LIMIT_PER_HOUR,
    )

    _, token = user_service.start_password_reset(db, req.email)
    data = None if settings.is_production else {"resetToken": token}
    return APIResponse(message="Password reset token generated", data=data)


@router.post("/reset-password", response_model=APIResponse)
def reset_password(
    req: ResetPasswordRequest,
    db: Session = Depends(get_db),
):
    """Set a new password using a reset token; signs out existing sessions"""
    user_service.complete_password_reset(db, req.token, req.new_password)
    return APIResponse(message="Password reset successful")
