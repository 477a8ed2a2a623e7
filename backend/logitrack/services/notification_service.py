"""Notification service"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from logitrack.core.exceptions import ResourceNotFoundError, ValidationError
from logitrack.models.notification import NOTIFICATION_TYPES, PRIORITIES, Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Create and manage per-user in-app notifications"""

    @staticmethod
    def notify_user(
        db: Session,
        recipient_id: int,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        priority: Optional[str] = None,
        commit: bool = True,
    ) -> Notification:
        if type not in NOTIFICATION_TYPES:
            raise ValidationError(f"Unknown notification type: {type}")
        if priority is None:
            priority = "high" if "alert" in type else "medium"
        if priority not in PRIORITIES:
            raise ValidationError(f"Unknown notification priority: {priority}")

        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
            priority=priority,
        )
        db.add(notification)
        if commit:
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def notify_users(
        db: Session,
        recipient_ids: Iterable[int],
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[Notification]:
        """One notification per recipient, committed together"""
        notifications = [
            NotificationService.notify_user(db, rid, type, title, message, data, commit=False)
            for rid in recipient_ids
        ]
        db.commit()
        for notification in notifications:
            db.refresh(notification)
        return notifications

    @staticmethod
    def list_for_user(
        db: Session, user_id: int, unread_only: bool = False, page: int = 1, limit: int = 20
    ) -> Tuple[List[Notification], int, int]:
        """Returns (page, total matching, unread count)"""
        base = db.query(Notification).filter(Notification.recipient_id == user_id)
        unread = base.filter(Notification.is_read.is_(False)).count()
        query = base.filter(Notification.is_read.is_(False)) if unread_only else base
        total = query.count()
        items = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total, unread

    @staticmethod
    def _get_own(db: Session, user_id: int, notification_id: int) -> Notification:
        notification = (
            db.query(Notification)
            .filter(Notification.id == notification_id, Notification.recipient_id == user_id)
            .first()
        )
        if not notification:
            raise ResourceNotFoundError("Notification")
        return notification

    @staticmethod
    def mark_read(db: Session, user_id: int, notification_id: int) -> Notification:
        notification = NotificationService._get_own(db, user_id, notification_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        count = (
            db.query(Notification)
            .filter(Notification.recipient_id == user_id, Notification.is_read.is_(False))
            .update(
                {Notification.is_read: True, Notification.read_at: datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        db.commit()
        return count

    @staticmethod
    def delete(db: Session, user_id: int, notification_id: int) -> None:
        notification = NotificationService._get_own(db, user_id, notification_id)
        db.delete(notification)
        db.commit()


notification_service = NotificationService()
