"""Realtime chat hub - Socket.IO namespace relaying conversation events"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

import socketio
from pydantic import ValidationError as PydanticValidationError
from prometheus_client import Counter, Gauge
from socketio.exceptions import ConnectionRefusedError as SocketConnectionRefused
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from logitrack.api.deps import authenticate_access_token
from logitrack.core.exceptions import AuthenticationError, BaseAPIException, ValidationError
from logitrack.realtime.registry import ConnectionRegistry, conversation_room, user_room
from logitrack.schemas.chat import ConversationEvent, MarkReadEvent, MessageCreate, MessageResponse
from logitrack.services.chat_service import chat_service
from logitrack.services.notification_service import notification_service
from logitrack.services.user_service import user_service

logger = logging.getLogger(__name__)

PRESENCE_STATUSES = ("online", "away", "busy", "offline")

CONNECTIONS_GAUGE = Gauge("logitrack_socket_connections", "Open realtime connections")
EVENTS_TOTAL = Counter(
    "logitrack_socket_events_total",
    "Realtime events handled",
    ["event", "outcome"],
)


def _guarded(event: str) -> Callable:
    """
    Run an event handler without letting errors escape to the server

    Known API errors and payload errors are reported to the originating
    connection as ``message_error``; anything else is logged and reported
    with a generic message.
    """
    def decorator(handler):
        @functools.wraps(handler)
        async def wrapper(self, sid, data=None):
            try:
                result = await handler(self, sid, data)
            except BaseAPIException as exc:
                EVENTS_TOTAL.labels(event, "rejected").inc()
                return await self._report_error(sid, exc.message, data)
            except PydanticValidationError as exc:
                EVENTS_TOTAL.labels(event, "invalid").inc()
                fields = [".".join(str(loc) for loc in err["loc"]) for err in exc.errors()]
                return await self._report_error(sid, f"Invalid payload: {', '.join(fields)}", data)
            except Exception:
                EVENTS_TOTAL.labels(event, "error").inc()
                logger.exception(f"Unhandled error in '{event}' for sid={sid}")
                return await self._report_error(sid, "Unable to process request", data)
            EVENTS_TOTAL.labels(event, "ok").inc()
            return result
        return wrapper
    return decorator


def _extract_token(environ: Dict[str, Any], auth: Any) -> Optional[str]:
    """Handshake token: ``auth.token`` first, then an ``Authorization: Bearer`` header"""
    if isinstance(auth, dict) and auth.get("token"):
        token = str(auth["token"])
        return token[7:] if token.lower().startswith("bearer ") else token
    header = (environ or {}).get("HTTP_AUTHORIZATION", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def _conversation_id(data: Any) -> int:
    """Accept either a bare id or ``{"conversationId": id}``"""
    if isinstance(data, dict):
        data = data.get("conversationId", data.get("conversation_id"))
    try:
        return int(data)
    except (TypeError, ValueError):
        raise ValidationError("conversationId is required")


class ChatNamespace(socketio.AsyncNamespace):
    """
    Realtime hub.

    Each connection is authenticated at handshake with an access token and
    admitted to its private ``user:<id>`` room. Conversation rooms are joined
    explicitly and only by participants. Messages are persisted before they
    are broadcast; live delivery is best effort.
    """

    def __init__(
        self,
        namespace: str = "/",
        *,
        registry: ConnectionRegistry,
        session_factory: Callable[[], Session],
    ):
        super().__init__(namespace)
        self.registry = registry
        self.session_factory = session_factory

    # -- plumbing -----------------------------------------------------------

    async def _run_db(self, fn: Callable, *args):
        """Run blocking ORM work in the threadpool with a dedicated session"""
        def work():
            db = self.session_factory()
            try:
                return fn(db, *args)
            finally:
                db.close()
        return await run_in_threadpool(work)

    async def _emit_many(self, sids: Iterable[str], event: str, data: Any, skip_sid: Optional[str] = None):
        for target in sids:
            if target != skip_sid:
                await self.emit(event, data, to=target)

    async def _report_error(self, sid: str, message: str, data: Any = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": message}
        if isinstance(data, dict) and data.get("tempId") is not None:
            payload["tempId"] = data["tempId"]
        await self.emit("message_error", payload, to=sid)
        return {"success": False, "error": message}

    def _connection(self, sid: str):
        connection = self.registry.get(sid)
        if connection is None:
            raise AuthenticationError("Connection is not authenticated")
        return connection

    # -- blocking units of work ------------------------------------------------

    @staticmethod
    def _authenticate(db: Session, token: Optional[str]) -> Tuple[int, str]:
        user = authenticate_access_token(db, token)
        return user.id, user.name

    @staticmethod
    def _check_membership(db: Session, user_id: int, conversation_id: int) -> None:
        chat_service.get_conversation_for(db, conversation_id, user_id)

    @staticmethod
    def _persist_message(db: Session, user_id: int, data: MessageCreate) -> Tuple[Dict[str, Any], Set[int]]:
        sender = user_service.get_user_by_id(db, user_id)
        if not sender or not sender.is_active:
            raise AuthenticationError("User account is deactivated")
        message = chat_service.send_message(db, sender, data)
        payload = MessageResponse.from_message(message).model_dump(by_alias=True, mode="json")
        participants = chat_service.get_conversation(db, message.conversation_id).participant_ids
        return payload, participants

    @staticmethod
    def _message_notifications(db: Session, recipient_ids: List[int], message: Dict[str, Any]) -> int:
        sender = message["sender"]
        body = message["message"] or "Attachment"
        notifications = notification_service.notify_users(
            db,
            recipient_ids,
            "message-received",
            f"New message from {sender['name']}",
            body[:140],
            data={"conversationId": message["conversationId"], "messageId": message["id"]},
        )
        return len(notifications)

    @staticmethod
    def _mark_read(db: Session, user_id: int, event: MarkReadEvent) -> List[int]:
        return chat_service.mark_read(db, event.conversation_id, user_id, event.message_ids)

    # -- connection lifecycle ------------------------------------------------

    async def on_connect(self, sid, environ, auth=None):
        token = _extract_token(environ, auth)
        try:
            user_id, user_name = await self._run_db(self._authenticate, token)
        except BaseAPIException as exc:
            logger.info(f"Refused socket connection sid={sid}: {exc.message}")
            raise SocketConnectionRefused("Authentication error")

        self.registry.add(sid, user_id, user_name)
        self.registry.join(sid, user_room(user_id))
        CONNECTIONS_GAUGE.inc()
        logger.info(f"User connected: {user_name} ({user_id}) sid={sid}")

    async def on_disconnect(self, sid, reason=None):
        connection = self.registry.remove(sid)
        if connection is None:
            return
        CONNECTIONS_GAUGE.dec()
        logger.info(f"User disconnected: {connection.user_name} ({connection.user_id}) sid={sid}")
        if not self.registry.is_online(connection.user_id):
            await self._emit_many(
                self.registry.all_sids(),
                "user_status_changed",
                {"userId": connection.user_id, "status": "offline"},
            )

    # -- client events -------------------------------------------------------

    @_guarded("join_conversation")
    async def on_join_conversation(self, sid, data=None):
        connection = self._connection(sid)
        conversation_id = _conversation_id(data)
        await self._run_db(self._check_membership, connection.user_id, conversation_id)
        self.registry.join(sid, conversation_room(conversation_id))
        logger.info(f"User {connection.user_id} joined conversation {conversation_id}")
        return {"success": True, "conversationId": conversation_id}

    @_guarded("leave_conversation")
    async def on_leave_conversation(self, sid, data=None):
        connection = self._connection(sid)
        conversation_id = _conversation_id(data)
        self.registry.leave(sid, conversation_room(conversation_id))
        logger.info(f"User {connection.user_id} left conversation {conversation_id}")
        return {"success": True, "conversationId": conversation_id}

    @_guarded("send_message")
    async def on_send_message(self, sid, data=None):
        connection = self._connection(sid)
        request = MessageCreate.model_validate(data or {})
        message, participants = await self._run_db(self._persist_message, connection.user_id, request)

        await self.broadcast_new_message(message)
        await self.emit("message_sent", {"tempId": request.temp_id, "message": message}, to=sid)
        await self.notify_absent_participants(message, participants)
        return {"success": True, "messageId": message["id"]}

    @_guarded("typing")
    async def on_typing(self, sid, data=None):
        connection = self._connection(sid)
        event = ConversationEvent.model_validate(data or {})
        room = conversation_room(event.conversation_id)
        if not self.registry.in_room(sid, room):
            return None
        await self._emit_many(
            self.registry.room_members(room),
            "user_typing",
            {"userId": connection.user_id, "userName": connection.user_name, "conversationId": event.conversation_id},
            skip_sid=sid,
        )

    @_guarded("stop_typing")
    async def on_stop_typing(self, sid, data=None):
        connection = self._connection(sid)
        event = ConversationEvent.model_validate(data or {})
        room = conversation_room(event.conversation_id)
        if not self.registry.in_room(sid, room):
            return None
        await self._emit_many(
            self.registry.room_members(room),
            "user_stop_typing",
            {"userId": connection.user_id, "conversationId": event.conversation_id},
            skip_sid=sid,
        )

    @_guarded("mark_read")
    async def on_mark_read(self, sid, data=None):
        connection = self._connection(sid)
        event = MarkReadEvent.model_validate(data or {})
        newly_read = await self._run_db(self._mark_read, connection.user_id, event)
        if newly_read:
            await self._emit_many(
                self.registry.room_members(conversation_room(event.conversation_id)),
                "messages_read",
                {
                    "conversationId": event.conversation_id,
                    "messageIds": newly_read,
                    "readBy": connection.user_id,
                },
                skip_sid=sid,
            )
        return {"success": True, "messageIds": newly_read}

    @_guarded("update_status")
    async def on_update_status(self, sid, data=None):
        connection = self._connection(sid)
        status = data.get("status") if isinstance(data, dict) else data
        if status not in PRESENCE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(PRESENCE_STATUSES)}")
        await self._emit_many(
            self.registry.all_sids(),
            "user_status_changed",
            {"userId": connection.user_id, "status": status},
        )
        return {"success": True}

    # -- server-initiated delivery -------------------------------------------

    async def broadcast_new_message(self, message: Dict[str, Any]) -> None:
        room = conversation_room(message["conversationId"])
        await self._emit_many(self.registry.room_members(room), "new_message", message)

    async def broadcast_message_deleted(self, conversation_id: int, message_id: int) -> None:
        await self._emit_many(
            self.registry.room_members(conversation_room(conversation_id)),
            "message_deleted",
            {"messageId": message_id, "conversationId": conversation_id},
        )

    async def end_sessions(self, user_id: int, reason: str) -> int:
        """
        Close every live connection of ``user_id``

        The private room gets ``session_ended`` first so clients can tell a
        revoked session from a network drop.
        """
        sids = self.registry.room_members(user_room(user_id))
        await self._emit_many(sids, "session_ended", {"reason": reason})
        for target in sids:
            await self.disconnect(target)
        if sids:
            logger.info(f"Ended {len(sids)} live connection(s) of user {user_id}: {reason}")
        return len(sids)

    async def notify_absent_participants(self, message: Dict[str, Any], participant_ids: Set[int]) -> None:
        """
        Record an inbox notification for participants not watching the conversation

        Nothing is pushed live; they pick it up through the notifications API.
        """
        present = self.registry.users_in_room(conversation_room(message["conversationId"]))
        absent = sorted(set(participant_ids) - present - {message["sender"]["id"]})
        if not absent:
            return
        try:
            await self._run_db(self._message_notifications, absent, message)
        except Exception:
            # The message itself is already stored and delivered.
            logger.exception(f"Failed to notify participants of message {message['id']}")
