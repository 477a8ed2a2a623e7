"""Pydantic schemas for API validation"""

from logitrack.schemas.user import (
    RegisterRequest,
    UserCreate,
    UserLogin,
    UserResponse,
    UserStatusUpdate,
    RefreshTokenRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    AuthPayload,
    AccessTokenPayload,
)
from logitrack.schemas.chat import (
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    MarkReadEvent,
)
from logitrack.schemas.notification import NotificationResponse
from logitrack.schemas.customer import CustomerCreate, CustomerUpdate, CustomerResponse
from logitrack.schemas.response import APIResponse, ErrorResponse, HealthResponse, PaginatedResponse

__all__ = [
    "RegisterRequest", "UserCreate", "UserLogin", "UserResponse", "UserStatusUpdate",
    "RefreshTokenRequest", "ForgotPasswordRequest", "ResetPasswordRequest",
    "AuthPayload", "AccessTokenPayload",
    "ConversationCreate", "ConversationResponse", "MessageCreate", "MessageResponse", "MarkReadEvent",
    "NotificationResponse",
    "CustomerCreate", "CustomerUpdate", "CustomerResponse",
    "APIResponse", "ErrorResponse", "HealthResponse", "PaginatedResponse",
]
