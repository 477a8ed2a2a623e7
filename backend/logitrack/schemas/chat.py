"""Chat schemas - conversations, messages, live events"""

from pydantic import Field, field_validator
from typing import List, Optional
from datetime import datetime

from logitrack.models.chat import MESSAGE_TYPES, Conversation, Message
from logitrack.schemas.response import CamelModel
from logitrack.schemas.user import ParticipantResponse


class Attachment(CamelModel):
    """Descriptor of an already-stored attachment"""
    url: str = Field(..., min_length=1, max_length=1024)
    type: Optional[str] = Field(None, max_length=128)
    name: Optional[str] = Field(None, max_length=255)
    size: Optional[int] = Field(None, ge=0)
    key: Optional[str] = Field(None, max_length=512)


class ConversationCreate(CamelModel):
    participant_ids: List[int] = Field(..., min_length=1)
    name: Optional[str] = Field(None, max_length=120)
    is_group: bool = False


class ConversationResponse(CamelModel):
    id: int
    name: Optional[str] = None
    is_group: bool
    participants: List[ParticipantResponse]
    created_by_id: Optional[int] = None
    last_message_id: Optional[int] = None
    last_message_at: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> "ConversationResponse":
        return cls.model_validate(conversation)


class MessageCreate(CamelModel):
    """Send payload, shared by HTTP and the live ``send_message`` event"""
    conversation_id: int
    message: str = Field("", max_length=5000)
    type: str = "text"
    attachment: Optional[Attachment] = None
    temp_id: Optional[str] = Field(None, max_length=64)

    @field_validator('message', mode='before')
    @classmethod
    def strip_message(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator('type')
    @classmethod
    def known_type(cls, v):
        if v not in MESSAGE_TYPES:
            raise ValueError(f"type must be one of: {', '.join(MESSAGE_TYPES)}")
        return v


class ReadReceipt(CamelModel):
    user_id: int
    read_at: Optional[datetime] = None


class MessageResponse(CamelModel):
    id: int
    conversation_id: int
    sender: ParticipantResponse
    message: str
    type: str
    attachment: Optional[Attachment] = None
    read_by: List[ReadReceipt] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        attachment = None
        if message.has_attachment:
            attachment = Attachment(
                url=message.attachment_url,
                type=message.attachment_type,
                name=message.attachment_name,
                size=message.attachment_size,
            )
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender=ParticipantResponse.model_validate(message.sender),
            message=message.body or "",
            type=message.type,
            attachment=attachment,
            read_by=[ReadReceipt(user_id=r.user_id, read_at=r.read_at) for r in message.reads],
            created_at=message.created_at,
        )


class MarkReadEvent(CamelModel):
    conversation_id: int
    message_ids: List[int] = Field(..., min_length=1, max_length=500)


class ConversationEvent(CamelModel):
    """Payload of ``typing`` / ``stop_typing``"""
    conversation_id: int
