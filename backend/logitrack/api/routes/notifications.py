"""Notification routes - the current user's inbox"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from logitrack.core.database import get_db
from logitrack.schemas.notification import NotificationResponse
from logitrack.schemas.response import APIResponse, PaginatedResponse, Pagination
from logitrack.services.notification_service import notification_service
from logitrack.api.deps import get_current_user
from logitrack.models.user import User

router = APIRouter()


@router.get("", response_model=PaginatedResponse)
def get_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    List notifications, newest first

    The unread count is reported in ``message`` alongside the page.
    """
    items, total, unread = notification_service.list_for_user(
        db, current_user.id, unread_only=unread_only, page=page, limit=limit
    )
    return PaginatedResponse(
        message=f"{unread} unread notification(s)",
        data=[NotificationResponse.model_validate(n) for n in items],
        pagination=Pagination(total=total, page=page, limit=limit, pages=(total + limit - 1) // limit),
    )


@router.put("/read-all", response_model=APIResponse)
def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    count = notification_service.mark_all_read(db, current_user.id)
    return APIResponse(message="All notifications marked as read", data={"updated": count})


@router.put("/{notification_id}/read", response_model=APIResponse)
def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = notification_service.mark_read(db, current_user.id, notification_id)
    return APIResponse(
        message="Notification marked as read",
        data=NotificationResponse.model_validate(notification),
    )


@router.delete("/{notification_id}", response_model=APIResponse)
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification_service.delete(db, current_user.id, notification_id)
    return APIResponse(message="Notification deleted successfully")
