"""Database models"""

from logitrack.models.user import User, UserRole
from logitrack.models.chat import Conversation, Message, MessageRead, conversation_participants
from logitrack.models.notification import Notification
from logitrack.models.customer import Customer
from logitrack.models.audit import AuditEvent

__all__ = [
    "User", "UserRole",
    "Conversation", "Message", "MessageRead", "conversation_participants",
    "Notification", "Customer", "AuditEvent",
]
