"""User management routes"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from typing import Optional

from logitrack.core.database import get_db
from logitrack.schemas.user import UserCreate, UserResponse, UserStatusUpdate
from logitrack.schemas.response import APIResponse
from logitrack.services.user_service import user_service
from logitrack.services.audit_service import audit_service
from logitrack.api.deps import get_chat_hub, get_current_admin_user, get_current_manager_user
from logitrack.models.user import User, UserRole

router = APIRouter()


@router.get("", response_model=APIResponse)
def get_all_users(
    role: Optional[UserRole] = None,
    current_user: User = Depends(get_current_manager_user),
    db: Session = Depends(get_db)
):
    """
    List users (admin, manager)

    Args:
        role: Optional role filter
    """
    users = user_service.get_all_users(db, role)
    return APIResponse(
        message="Users retrieved successfully",
        data=[UserResponse.model_validate(u) for u in users],
    )


@router.post("", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Provision a user with any role (admin only)"""
    user = user_service.create_user(db, user_data)
    audit_service.log_event(
        db,
        user_id=current_user.id,
        action="user.create",
        target_type="user",
        target_id=str(user.id),
        ip_address=request.client.host if request.client else None,
        metadata={"email": user.email, "role": user.role.value},
    )
    return APIResponse(message="User created successfully", data=UserResponse.model_validate(user))


@router.patch("/{user_id}/status", response_model=APIResponse)
async def update_user_status(
    user_id: int,
    body: UserStatusUpdate,
    request: Request,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
    hub=Depends(get_chat_hub),
):
    """
    Activate or deactivate an account (admin only)

    Accounts are never hard-deleted. Deactivation also closes the user's
    live realtime connections.
    """
    def apply():
        user = user_service.set_active(db, user_id, body.is_active, acting_user=current_user)
        audit_service.log_event(
            db,
            user_id=current_user.id,
            action="user.activate" if body.is_active else "user.deactivate",
            target_type="user",
            target_id=str(user.id),
            ip_address=request.client.host if request.client else None,
        )
        return UserResponse.model_validate(user)

    user = await run_in_threadpool(apply)
    if not user.is_active:
        await hub.end_sessions(user.id, "Account deactivated")
    return APIResponse(
        message=f"User {'activated' if user.is_active else 'deactivated'} successfully",
        data=user,
    )
