"""User model"""

from enum import Enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from logitrack.core.database import Base
from logitrack.core.security import get_password_hash, verify_password


class UserRole(str, Enum):
    """Closed set of roles an identity can hold"""
    ADMIN = "admin"
    MANAGER = "manager"
    DRIVER = "driver"
    STAFF = "staff"


class User(Base):
    """User model for authentication and authorization"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(
        SAEnum(
            UserRole,
            name="user_role",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=UserRole.STAFF,
        nullable=False,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True))
    # Single active refresh token; overwritten on every issue, cleared on logout.
    refresh_token = Column(Text, nullable=True)
    password_reset_token_hash = Column(String(64), nullable=True, index=True)
    password_reset_expires = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_users_email', 'email'),
        Index('idx_users_role', 'role'),
    )

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def password(self):
        raise AttributeError("password is write-only")

    @password.setter
    def password(self, plain_password: str) -> None:
        self.password_hash = get_password_hash(plain_password)

    def check_password(self, plain_password: str) -> bool:
        return verify_password(plain_password, self.password_hash)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
