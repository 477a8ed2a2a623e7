"""Conversation, message and read-receipt models"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Index, Table, UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from logitrack.core.database import Base


MESSAGE_TYPES = ("text", "image", "file", "location", "system")


conversation_participants = Table(
    "conversation_participants",
    Base.metadata,
    Column("conversation_id", Integer, ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Index("idx_conversation_participants_user", "user_id"),
)


def direct_key_for(user_a: int, user_b: int) -> str:
    """Order-independent key for a two-party conversation"""
    low, high = sorted((int(user_a), int(user_b)))
    return f"{low}:{high}"


class Conversation(Base):
    """A direct (two participants) or group conversation"""

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=True)
    is_group = Column(Boolean, default=False, nullable=False)
    # Unique for direct conversations, NULL for groups.
    direct_key = Column(String(64), unique=True, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    last_message_id = Column(
        Integer,
        ForeignKey("messages.id", ondelete="SET NULL", use_alter=True, name="fk_conversations_last_message"),
        nullable=True,
    )
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    participants = relationship("User", secondary=conversation_participants, lazy="selectin")
    created_by = relationship("User", foreign_keys=[created_by_id])
    last_message = relationship("Message", foreign_keys=[last_message_id], post_update=True)

    __table_args__ = (
        Index("idx_conversations_last_message_at", "last_message_at"),
    )

    @property
    def participant_ids(self):
        return {user.id for user in self.participants}

    def has_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids


class Message(Base):
    """Chat message; body may be empty only when an attachment is present"""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    body = Column(Text, nullable=False, default="")
    type = Column(String(20), nullable=False, default="text")
    attachment_url = Column(String(1024), nullable=True)
    attachment_type = Column(String(128), nullable=True)
    attachment_name = Column(String(255), nullable=True)
    attachment_size = Column(Integer, nullable=True)
    # Relative path under UPLOADS_DIR when the file is stored locally.
    attachment_key = Column(String(512), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    conversation = relationship("Conversation", foreign_keys=[conversation_id])
    sender = relationship("User", lazy="joined")
    reads = relationship("MessageRead", cascade="all, delete-orphan", lazy="selectin")

    __table_args__ = (
        Index("idx_messages_conversation_created", "conversation_id", "created_at"),
        Index("idx_messages_sender", "sender_id"),
    )

    @property
    def has_attachment(self) -> bool:
        return bool(self.attachment_url)


class MessageRead(Base):
    """Per-reader receipt for a message"""

    __tablename__ = "message_reads"

    id = Column(Integer, primary_key=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    read_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_reads_message_user"),
    )
