"""In-app notification model"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Index, JSON
from sqlalchemy.sql import func

from logitrack.core.database import Base


NOTIFICATION_TYPES = (
    "order-placed", "order-confirmed", "order-shipped", "order-delivered",
    "shipment-update", "route-assigned", "attendance-alert",
    "payment-received", "invoice-generated", "low-stock-alert",
    "vehicle-maintenance", "system-alert", "message-received",
    "delivery-delayed", "driver-assigned", "leave-approved", "leave-rejected",
)

PRIORITIES = ("low", "medium", "high", "urgent")


class Notification(Base):
    """Notification addressed to a single user"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(40), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String(10), nullable=False, default="medium")
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_notifications_recipient_read", "recipient_id", "is_read", "created_at"),
    )
