import asyncio
from datetime import timedelta

import pytest
from socketio.exceptions import ConnectionRefusedError
from sqlalchemy.exc import OperationalError

from logitrack.core.database import SessionLocal
from logitrack.core.security import create_access_token, create_refresh_token
from logitrack.models.chat import Message
from logitrack.models.notification import Notification
from logitrack.realtime.hub import ChatNamespace
from logitrack.realtime.registry import ConnectionRegistry, user_room
from logitrack.schemas.chat import ConversationCreate
from logitrack.services.chat_service import chat_service


class RecordingHub(ChatNamespace):
    """Hub whose emits are captured instead of sent"""

    def __init__(self):
        super().__init__("/", registry=ConnectionRegistry(), session_factory=SessionLocal)
        self.sent = []

    async def emit(self, event, data=None, to=None, **kwargs):
        self.sent.append((event, data, to))

    async def disconnect(self, sid, namespace=None):
        self.sent.append(("disconnect", None, sid))
        await self.on_disconnect(sid)

    def received(self, sid, event=None):
        return [data for name, data, target in self.sent if target == sid and (event is None or name == event)]


def _token(user):
    return {"token": create_access_token(user.id, user.role)}


@pytest.fixture
def team(db, make_user):
    ann, ben, dee, cal = (make_user(name=n) for n in ("Ann", "Ben", "Dee", "Cal"))
    group, _ = chat_service.get_or_create_conversation(
        db, ann, ConversationCreate(participant_ids=[ben.id, dee.id], is_group=True, name="Yard")
    )
    return ann, ben, dee, cal, group.id


def test_connect_authenticates_and_joins_private_room(make_user):
    ann = make_user(name="Ann")
    hub = RecordingHub()

    asyncio.run(hub.on_connect("a1", {}, _token(ann)))

    connection = hub.registry.get("a1")
    assert connection.user_id == ann.id
    assert hub.registry.in_room("a1", user_room(ann.id))


def test_connect_accepts_bearer_header(make_user):
    ann = make_user(name="Ann")
    hub = RecordingHub()
    environ = {"HTTP_AUTHORIZATION": f"Bearer {create_access_token(ann.id, ann.role)}"}
    asyncio.run(hub.on_connect("a1", environ, None))
    assert hub.registry.get("a1").user_id == ann.id


@pytest.mark.parametrize("auth", [None, {"token": "junk"}])
def test_connect_without_valid_token_is_refused(auth):
    hub = RecordingHub()
    with pytest.raises(ConnectionRefusedError):
        asyncio.run(hub.on_connect("x", {}, auth))
    assert len(hub.registry) == 0


def test_connect_refuses_refresh_and_expired_tokens(make_user):
    ann = make_user(name="Ann")
    hub = RecordingHub()
    expired = create_access_token(ann.id, ann.role, expires_delta=timedelta(seconds=-1))
    for token in (create_refresh_token(ann.id), expired):
        with pytest.raises(ConnectionRefusedError):
            asyncio.run(hub.on_connect("x", {}, {"token": token}))


def test_non_participant_cannot_join(team):
    _, _, _, cal, conversation_id = team
    hub = RecordingHub()

    async def scenario():
        await hub.on_connect("c1", {}, _token(cal))
        return await hub.on_join_conversation("c1", {"conversationId": conversation_id})

    ack = asyncio.run(scenario())
    assert ack["success"] is False
    assert hub.received("c1", "message_error") == [{"error": "You are not a participant in this conversation"}]
    assert hub.registry.room_members(f"conversation:{conversation_id}") == []


def test_send_persists_then_broadcasts_to_joined_connections_only(db, team):
    ann, ben, dee, _, conversation_id = team
    hub = RecordingHub()

    async def scenario():
        await hub.on_connect("a1", {}, _token(ann))
        await hub.on_connect("b1", {}, _token(ben))
        await hub.on_connect("d1", {}, _token(dee))
        await hub.on_join_conversation("a1", conversation_id)
        await hub.on_join_conversation("b1", {"conversationId": conversation_id})
        return await hub.on_send_message(
            "a1", {"conversationId": conversation_id, "message": "Truck 12 loaded", "tempId": "t-1"}
        )

    ack = asyncio.run(scenario())
    assert ack["success"] is True

    stored = db.query(Message).filter(Message.id == ack["messageId"]).one()
    assert stored.body == "Truck 12 loaded"

    assert [m["id"] for m in hub.received("a1", "new_message")] == [stored.id]
    assert [m["id"] for m in hub.received("b1", "new_message")] == [stored.id]
    assert hub.received("d1", "new_message") == []
    assert hub.received("a1", "message_sent")[0]["tempId"] == "t-1"

    assert hub.received("d1") == []

    # Dee was not watching, so the message is waiting in the inbox instead.
    inbox = db.query(Notification).all()
    assert [n.recipient_id for n in inbox] == [dee.id]
    assert inbox[0].data == {"conversationId": conversation_id, "messageId": stored.id}


def test_rejected_send_reports_error_with_temp_id(db, team):
    ann, _, _, _, conversation_id = team
    hub = RecordingHub()

    async def scenario():
        await hub.on_connect("a1", {}, _token(ann))
        return await hub.on_send_message("a1", {"conversationId": conversation_id, "message": "", "tempId": "t-9"})

    ack = asyncio.run(scenario())
    assert ack == {"success": False, "error": "Message or attachment is required"}
    assert hub.received("a1", "message_error") == [{"error": "Message or attachment is required", "tempId": "t-9"}]
    assert db.query(Message).count() == 0


def test_typing_reaches_others_in_room_but_not_sender(team):
    ann, ben, dee, _, conversation_id = team
    hub = RecordingHub()

    async def scenario():
        for sid, user in (("a1", ann), ("b1", ben), ("d1", dee)):
            await hub.on_connect(sid, {}, _token(user))
        await hub.on_join_conversation("a1", conversation_id)
        await hub.on_join_conversation("b1", conversation_id)
        await hub.on_typing("a1", {"conversationId": conversation_id})
        await hub.on_stop_typing("a1", {"conversationId": conversation_id})
        # Not joined: ignored.
        await hub.on_typing("d1", {"conversationId": conversation_id})

    asyncio.run(scenario())
    assert hub.received("b1", "user_typing") == [
        {"userId": ann.id, "userName": "Ann", "conversationId": conversation_id}
    ]
    assert hub.received("b1", "user_stop_typing") == [{"userId": ann.id, "conversationId": conversation_id}]
    assert hub.received("a1", "user_typing") == []
    assert hub.received("a1", "user_stop_typing") == []


def test_mark_read_broadcasts_new_receipts_only(db, team):
    ann, ben, _, _, conversation_id = team
    hub = RecordingHub()

    async def scenario():
        await hub.on_connect("a1", {}, _token(ann))
        await hub.on_connect("b1", {}, _token(ben))
        await hub.on_join_conversation("a1", conversation_id)
        await hub.on_join_conversation("b1", conversation_id)
        sent = await hub.on_send_message("a1", {"conversationId": conversation_id, "message": "eta?"})
        first = await hub.on_mark_read("b1", {"conversationId": conversation_id, "messageIds": [sent["messageId"]]})
        second = await hub.on_mark_read("b1", {"conversationId": conversation_id, "messageIds": [sent["messageId"]]})
        return sent["messageId"], first, second

    message_id, first, second = asyncio.run(scenario())
    assert first["messageIds"] == [message_id]
    assert second["messageIds"] == []
    assert hub.received("a1", "messages_read") == [
        {"conversationId": conversation_id, "messageIds": [message_id], "readBy": ben.id}
    ]
    assert hub.received("b1", "messages_read") == []


def test_disconnect_broadcasts_offline_after_last_connection(make_user):
    ann = make_user(name="Ann")
    ben = make_user(name="Ben")
    hub = RecordingHub()

    async def scenario():
        await hub.on_connect("a1", {}, _token(ann))
        await hub.on_connect("a2", {}, _token(ann))
        await hub.on_connect("b1", {}, _token(ben))
        await hub.on_disconnect("a1")
        offline_after_first = list(hub.received("b1", "user_status_changed"))
        await hub.on_disconnect("a2")
        return offline_after_first

    offline_after_first = asyncio.run(scenario())
    assert offline_after_first == []
    assert hub.received("b1", "user_status_changed") == [{"userId": ann.id, "status": "offline"}]
    assert not hub.registry.is_online(ann.id)


def test_update_status_validates_value(make_user):
    ann = make_user(name="Ann")
    ben = make_user(name="Ben")
    hub = RecordingHub()

    async def scenario():
        await hub.on_connect("a1", {}, _token(ann))
        await hub.on_connect("b1", {}, _token(ben))
        bad = await hub.on_update_status("a1", {"status": "sleeping"})
        good = await hub.on_update_status("a1", {"status": "away"})
        return bad, good

    bad, good = asyncio.run(scenario())
    assert bad["success"] is False
    assert good == {"success": True}
    assert hub.received("b1", "user_status_changed") == [{"userId": ann.id, "status": "away"}]


def test_events_from_unknown_connection_are_rejected():
    hub = RecordingHub()
    ack = asyncio.run(hub.on_join_conversation("ghost", {"conversationId": 1}))
    assert ack["success"] is False
    assert hub.received("ghost", "message_error")


def test_failed_persist_broadcasts_nothing(db, team, monkeypatch):
    ann, ben, _, _, conversation_id = team
    hub = RecordingHub()

    def failing_send(*args, **kwargs):
        raise OperationalError("INSERT INTO messages", {}, Exception("disk I/O error"))

    monkeypatch.setattr(chat_service, "send_message", failing_send)

    async def scenario():
        await hub.on_connect("a1", {}, _token(ann))
        await hub.on_connect("b1", {}, _token(ben))
        await hub.on_join_conversation("a1", conversation_id)
        await hub.on_join_conversation("b1", conversation_id)
        return await hub.on_send_message(
            "a1", {"conversationId": conversation_id, "message": "Dock 3 free", "tempId": "t-7"}
        )

    ack = asyncio.run(scenario())
    assert ack["success"] is False
    assert hub.received("a1", "message_error") == [{"error": "Unable to process request", "tempId": "t-7"}]
    assert hub.received("b1") == []
    assert [name for name, _, _ in hub.sent if name in ("new_message", "message_sent")] == []
    assert db.query(Message).count() == 0
    assert db.query(Notification).count() == 0


def test_end_sessions_closes_every_connection_of_the_user(make_user):
    ann = make_user(name="Ann")
    ben = make_user(name="Ben")
    hub = RecordingHub()

    async def scenario():
        await hub.on_connect("a1", {}, _token(ann))
        await hub.on_connect("a2", {}, _token(ann))
        await hub.on_connect("b1", {}, _token(ben))
        return await hub.end_sessions(ann.id, "Account deactivated")

    assert asyncio.run(scenario()) == 2
    for sid in ("a1", "a2"):
        assert hub.received(sid, "session_ended") == [{"reason": "Account deactivated"}]
        assert hub.received(sid, "disconnect") == [None]
    assert hub.received("b1", "session_ended") == []
    assert hub.received("b1", "user_status_changed") == [{"userId": ann.id, "status": "offline"}]
    assert not hub.registry.is_online(ann.id)
    assert hub.registry.is_online(ben.id)
