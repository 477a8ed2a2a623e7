"""Notification schemas"""

from typing import Any, Dict, Optional
from datetime import datetime

from logitrack.schemas.response import CamelModel


class NotificationResponse(CamelModel):
    id: int
    type: str
    title: str
    message: str
    priority: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
