"""Session token issue, refresh and revocation service."""

from __future__ import annotations

import hmac
import logging
from typing import Tuple

from sqlalchemy.orm import Session

from logitrack.core.exceptions import AuthenticationError, BaseAPIException
from logitrack.core.security import (
    TokenKind,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from logitrack.models.user import User

logger = logging.getLogger(__name__)


class TokenService:
    """
    Manage the access/refresh pair of a session.

    Each user holds at most one valid refresh token: the value stored on
    ``User.refresh_token``. Issuing a pair overwrites it, so with concurrent
    logins the last committed write is the only refresh token that will be
    accepted afterwards.
    """

    @staticmethod
    def issue_token_pair(db: Session, user: User) -> Tuple[str, str]:
        access_token = create_access_token(user.id, user.role)
        refresh_token = create_refresh_token(user.id)
        user.refresh_token = refresh_token
        db.commit()
        return access_token, refresh_token

    @staticmethod
    def refresh_access_token(db: Session, refresh_token: str) -> Tuple[User, str]:
        """
        Exchange a refresh token for a new access token

        Raises:
            AuthenticationError: Token invalid, expired, superseded, or user inactive
        """
        try:
            payload = verify_token(refresh_token, TokenKind.REFRESH)
        except BaseAPIException:
            raise AuthenticationError("Invalid or expired refresh token")

        user = db.query(User).filter(User.id == int(payload["sub"])).first()
        if not user or not user.is_active:
            raise AuthenticationError("Invalid refresh token")

        stored = user.refresh_token or ""
        if not stored or not hmac.compare_digest(stored, refresh_token):
            logger.warning(f"Rejected superseded refresh token for user {user.id}")
            raise AuthenticationError("Invalid refresh token")

        return user, create_access_token(user.id, user.role)

    @staticmethod
    def revoke(db: Session, user: User) -> bool:
        """Clear the stored refresh token; returns False when nothing was stored"""
        if user.refresh_token is None:
            return False
        user.refresh_token = None
        db.commit()
        return True


token_service = TokenService()
