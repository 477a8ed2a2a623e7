"""Security utilities - JWT issue/verify, password hashing"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
import hashlib
import secrets

from logitrack.config import settings
from logitrack.core.exceptions import TokenExpiredError, TokenInvalidError


class TokenKind(str, Enum):
    """Token purpose, carried in the ``typ`` claim"""
    ACCESS = "access"
    REFRESH = "refresh"


def _secret_for(kind: TokenKind) -> str:
    if kind is TokenKind.REFRESH:
        return settings.REFRESH_SECRET_KEY
    return settings.SECRET_KEY


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        bool: True if password matches
    """
    if not hashed_password:
        return False
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def _encode(claims: Dict[str, Any], kind: TokenKind, expires_delta: timedelta) -> str:
    now = datetime.utcnow()
    to_encode = dict(claims)
    to_encode.update({
        "typ": kind.value,
        "exp": now + expires_delta,
        "iat": now,
        "jti": secrets.token_urlsafe(16)  # Unique token ID
    })
    return jwt.encode(to_encode, _secret_for(kind), algorithm=settings.ALGORITHM)


def create_access_token(user_id: int, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed access token carrying the user id and role

    Args:
        user_id: Identity id, stored in ``sub``
        role: Role value at issue time
        expires_delta: Override for ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        str: Encoded JWT token
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    role_value = role.value if isinstance(role, Enum) else role
    return _encode({"sub": str(user_id), "role": role_value}, TokenKind.ACCESS, expires_delta)


def create_refresh_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Create a refresh token; signed with REFRESH_SECRET_KEY and carrying only ``sub``"""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode({"sub": str(user_id)}, TokenKind.REFRESH, expires_delta)


def verify_token(token: str, kind: TokenKind) -> Dict[str, Any]:
    """
    Decode and verify a token of the given kind

    Args:
        token: JWT token string
        kind: Expected token kind

    Returns:
        Dict: Verified claims

    Raises:
        TokenExpiredError: Token is past its ``exp``
        TokenInvalidError: Bad signature, malformed token or wrong kind
    """
    if not token:
        raise TokenInvalidError()
    try:
        payload = jwt.decode(token, _secret_for(kind), algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise TokenInvalidError()

    if payload.get("typ") != kind.value:
        raise TokenInvalidError(f"Expected {kind.value} token")
    sub = payload.get("sub")
    if not sub or not str(sub).isdigit():
        raise TokenInvalidError("Invalid token payload")
    return payload


def hash_reset_token(token: str) -> str:
    """One-way digest stored for password reset tokens"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_reset_token() -> str:
    return secrets.token_hex(32)
