"""User service - registration, credential checks, account state"""

from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import datetime, timedelta, timezone

from logitrack.config import settings
from logitrack.models.user import User, UserRole
from logitrack.schemas.user import RegisterRequest, UserCreate
from logitrack.core.security import generate_reset_token, hash_reset_token
from logitrack.core.exceptions import (
    AccountDisabledError,
    AuthorizationError,
    BusinessLogicError,
    DuplicateEmailError,
    InvalidCredentialsError,
    PasswordResetInvalidError,
    ResourceNotFoundError,
)
import logging

logger = logging.getLogger(__name__)

# Roles a user may pick for themselves at registration.
SELF_SERVICE_ROLES = frozenset({UserRole.DRIVER, UserRole.STAFF})


def _as_aware(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class UserService:
    """Service for user management"""

    @staticmethod
    def create_user(db: Session, user_data: UserCreate) -> User:
        """
        Create new user

        Args:
            db: Database session
            user_data: User creation data

        Returns:
            Created user

        Raises:
            DuplicateEmailError: If the email is already registered
        """
        if UserService.get_user_by_email(db, user_data.email):
            raise DuplicateEmailError(user_data.email)

        user = User(
            name=user_data.name,
            email=user_data.email,
            phone=user_data.phone,
            role=user_data.role or UserRole.STAFF,
            is_active=True,
        )
        user.password = user_data.password

        db.add(user)
        db.commit()
        db.refresh(user)

        logger.info(f"Created user: {user.email} (role: {user.role.value})")
        return user

    @staticmethod
    def register(db: Session, data: RegisterRequest) -> User:
        """Self-service registration; elevated roles are provisioned by an admin only"""
        role = data.role or UserRole.STAFF
        if role not in SELF_SERVICE_ROLES:
            raise AuthorizationError(f"Role '{role.value}' cannot be self-assigned")
        return UserService.create_user(db, UserCreate(**data.model_dump(exclude={"role"}), role=role))

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> User:
        """
        Check credentials and stamp ``last_login``

        Args:
            db: Database session
            email: Email (any case)
            password: Plain text password

        Returns:
            Authenticated user

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
            AccountDisabledError: Correct credentials on a deactivated account
        """
        user = UserService.get_user_by_email(db, email)
        if not user or not user.check_password(password):
            logger.info(f"Failed login for: {email}")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(f"Login attempt on deactivated account: {email}")
            raise AccountDisabledError()

        user.last_login = datetime.now(timezone.utc)
        db.commit()

        logger.info(f"User authenticated: {user.email}")
        return user

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email, case-insensitively"""
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def get_all_users(db: Session, role: Optional[UserRole] = None) -> List[User]:
        query = db.query(User)
        if role:
            query = query.filter(User.role == role)
        return query.order_by(User.id).all()

    @staticmethod
    def set_active(db: Session, user_id: int, is_active: bool, acting_user: User) -> User:
        """
        Soft-enable or soft-disable an account

        Deactivation also drops the stored refresh token so the session
        cannot be extended.
        """
        user = UserService.get_user_by_id(db, user_id)
        if not user:
            raise ResourceNotFoundError("User")
        if user.id == acting_user.id and not is_active:
            raise BusinessLogicError("You cannot deactivate your own account")

        user.is_active = is_active
        if not is_active:
            user.refresh_token = None
        db.commit()
        db.refresh(user)

        logger.info(f"User {user.email} {'activated' if is_active else 'deactivated'} by {acting_user.email}")
        return user

    @staticmethod
    def start_password_reset(db: Session, email: str) -> Tuple[User, str]:
        """Issue a reset token; only its sha256 digest is stored"""
        user = UserService.get_user_by_email(db, email)
        if not user:
            raise ResourceNotFoundError("User")

        token = generate_reset_token()
        user.password_reset_token_hash = hash_reset_token(token)
        user.password_reset_expires = datetime.now(timezone.utc) + timedelta(
            minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
        )
        db.commit()

        logger.info(f"Password reset requested for: {user.email}")
        return user, token

    @staticmethod
    def complete_password_reset(db: Session, token: str, new_password: str) -> User:
        """Set a new password from a valid reset token and end the current session"""
        user = (
            db.query(User)
            .filter(User.password_reset_token_hash == hash_reset_token(token))
            .first()
        )
        expires = _as_aware(user.password_reset_expires) if user else None
        if not user or not expires or expires <= datetime.now(timezone.utc):
            raise PasswordResetInvalidError()

        user.password = new_password
        user.password_reset_token_hash = None
        user.password_reset_expires = None
        user.refresh_token = None
        db.commit()

        logger.info(f"Password reset completed for: {user.email}")
        return user

    @staticmethod
    def ensure_admin(db: Session) -> Optional[User]:
        """Create the bootstrap admin when no account holds its email"""
        if UserService.get_user_by_email(db, settings.ADMIN_EMAIL):
            return None
        return UserService.create_user(
            db,
            UserCreate(
                name=settings.ADMIN_NAME,
                email=settings.ADMIN_EMAIL,
                password=settings.ADMIN_PASSWORD,
                role=UserRole.ADMIN,
            ),
        )


# Singleton instance
user_service = UserService()
