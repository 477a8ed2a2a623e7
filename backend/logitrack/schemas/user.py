"""User and authentication schemas"""

from pydantic import EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from logitrack.models.user import UserRole
from logitrack.schemas.response import CamelModel

PHONE_PATTERN = r"^\+?[0-9 ()-]{7,20}$"


class _EmailModel(CamelModel):
    """Lower-cases and trims ``email`` before address validation"""

    @field_validator('email', mode='before', check_fields=False)
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


class RegisterRequest(_EmailModel):
    """Self-service registration"""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    role: Optional[UserRole] = None

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name is required')
        return v


class UserCreate(RegisterRequest):
    """Administrative provisioning; any role may be assigned"""
    role: UserRole = UserRole.STAFF


class UserLogin(_EmailModel):
    """User login schema"""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(_EmailModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class UserStatusUpdate(CamelModel):
    is_active: bool


class UserResponse(CamelModel):
    """Public view of a user; never carries secrets"""
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ParticipantResponse(CamelModel):
    """Compact user view embedded in chat payloads"""
    id: int
    name: str
    email: str


class AuthPayload(CamelModel):
    """Token pair issued on register/login"""
    user: UserResponse
    access_token: str
    refresh_token: str


class AccessTokenPayload(CamelModel):
    access_token: str
