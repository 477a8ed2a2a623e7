"""Chat service - conversations, messages and read receipts"""

from datetime import datetime, timezone
from typing import List, Sequence, Tuple
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from logitrack.config import settings
from logitrack.core.exceptions import (
    AuthorizationError,
    ResourceNotFoundError,
    ValidationError,
)
from logitrack.models.chat import Conversation, Message, MessageRead, direct_key_for
from logitrack.models.user import User
from logitrack.schemas.chat import ConversationCreate, MessageCreate
from logitrack.services.attachment_store import attachment_store

logger = logging.getLogger(__name__)


class ChatService:
    """Persistence rules shared by the chat routes and the realtime hub"""

    @staticmethod
    def get_conversation(db: Session, conversation_id: int) -> Conversation:
        conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
        if not conversation or not conversation.is_active:
            raise ResourceNotFoundError("Conversation")
        return conversation

    @staticmethod
    def get_conversation_for(db: Session, conversation_id: int, user_id: int) -> Conversation:
        """Load a conversation the user participates in"""
        conversation = ChatService.get_conversation(db, conversation_id)
        if not conversation.has_participant(user_id):
            raise AuthorizationError("You are not a participant in this conversation")
        return conversation

    @staticmethod
    def get_or_create_conversation(
        db: Session, creator: User, data: ConversationCreate
    ) -> Tuple[Conversation, bool]:
        """
        Create a conversation, or return the existing direct one

        Two-party (non-group) conversations are unique per unordered pair,
        enforced by ``Conversation.direct_key``.

        Returns:
            (conversation, created)
        """
        participant_ids = set(data.participant_ids) | {creator.id}
        users = db.query(User).filter(User.id.in_(participant_ids), User.is_active.is_(True)).all()
        if len(users) != len(participant_ids):
            raise ResourceNotFoundError("Participant")

        if not data.is_group:
            if len(participant_ids) != 2:
                raise ValidationError(
                    "A direct conversation needs exactly one other participant",
                    details={"participantIds": sorted(participant_ids)},
                )
            key = direct_key_for(*participant_ids)
            existing = db.query(Conversation).filter(Conversation.direct_key == key).first()
            if existing:
                return existing, False
        else:
            if len(participant_ids) < 2:
                raise ValidationError("A group conversation needs at least one other participant")
            key = None

        conversation = Conversation(
            name=data.name,
            is_group=data.is_group,
            direct_key=key,
            created_by_id=creator.id,
            participants=users,
        )
        db.add(conversation)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race against a concurrent create for the same pair.
            db.rollback()
            existing = db.query(Conversation).filter(Conversation.direct_key == key).first() if key else None
            if existing is None:
                raise
            return existing, False

        db.refresh(conversation)
        logger.info(f"Conversation {conversation.id} created by user {creator.id}")
        return conversation, True

    @staticmethod
    def list_conversations(db: Session, user_id: int) -> List[Conversation]:
        """User's active conversations, most recent activity first"""
        return (
            db.query(Conversation)
            .filter(Conversation.is_active.is_(True), Conversation.participants.any(User.id == user_id))
            .order_by(
                Conversation.last_message_at.is_(None),
                Conversation.last_message_at.desc(),
                Conversation.id.desc(),
            )
            .all()
        )

    @staticmethod
    def send_message(db: Session, sender: User, data: MessageCreate) -> Message:
        """
        Persist a message from a participant

        The message insert and the conversation's last-message update are
        separate commits; a failure of the second leaves the message stored.
        """
        if not data.message and data.attachment is None:
            raise ValidationError(
                "Message or attachment is required",
                details={"field": "message"},
            )
        if len(data.message) > settings.MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Message exceeds {settings.MAX_MESSAGE_LENGTH} characters")

        conversation = ChatService.get_conversation_for(db, data.conversation_id, sender.id)

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender.id,
            body=data.message,
            type=data.type,
        )
        if data.attachment is not None:
            message.attachment_url = data.attachment.url
            message.attachment_type = data.attachment.type
            message.attachment_name = data.attachment.name
            message.attachment_size = data.attachment.size
            message.attachment_key = data.attachment.key
        db.add(message)
        db.commit()
        db.refresh(message)

        try:
            conversation.last_message_id = message.id
            conversation.last_message_at = message.created_at
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to update last message of conversation {conversation.id}")

        return message

    @staticmethod
    def list_messages(
        db: Session, conversation_id: int, user_id: int, page: int = 1, limit: int = 50
    ) -> Tuple[List[Message], int]:
        """One page of history, newest page first, each page ordered oldest first"""
        ChatService.get_conversation_for(db, conversation_id, user_id)
        query = db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.is_deleted.is_(False),
        )
        total = query.count()
        messages = (
            query.order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        messages.reverse()
        return messages, total

    @staticmethod
    def delete_message(db: Session, message_id: int, user_id: int) -> Message:
        """Soft-delete a message owned by ``user_id`` and drop its stored attachment"""
        message = db.query(Message).filter(Message.id == message_id).first()
        if not message or message.is_deleted:
            raise ResourceNotFoundError("Message")
        if message.sender_id != user_id:
            raise AuthorizationError("You can only delete your own messages")

        message.is_deleted = True
        message.deleted_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(message)

        # Only once the row is committed; a failed commit keeps the file.
        attachment_store.delete(message.attachment_key)

        logger.info(f"Message {message.id} deleted by user {user_id}")
        return message

    @staticmethod
    def mark_read(
        db: Session, conversation_id: int, user_id: int, message_ids: Sequence[int]
    ) -> List[int]:
        """
        Record read receipts for ``user_id``

        Returns:
            Ids that gained a receipt in this call. Unknown ids, ids from
            other conversations, the reader's own messages and messages
            already read are skipped.
        """
        ChatService.get_conversation_for(db, conversation_id, user_id)

        candidates = [
            row.id
            for row in db.query(Message.id).filter(
                Message.id.in_(set(message_ids)),
                Message.conversation_id == conversation_id,
                Message.sender_id != user_id,
                Message.is_deleted.is_(False),
            )
        ]
        if not candidates:
            return []

        already = {
            row.message_id
            for row in db.query(MessageRead.message_id).filter(
                MessageRead.user_id == user_id,
                MessageRead.message_id.in_(candidates),
            )
        }
        newly_read = sorted(set(candidates) - already)
        now = datetime.now(timezone.utc)
        for message_id in newly_read:
            db.add(MessageRead(message_id=message_id, user_id=user_id, read_at=now))
        db.commit()
        return newly_read


chat_service = ChatService()
