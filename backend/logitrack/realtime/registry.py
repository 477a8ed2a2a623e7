"""Registry of live connections, indexed by identity and by room."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def conversation_room(conversation_id: int) -> str:
    return f"conversation:{conversation_id}"


@dataclass
class Connection:
    sid: str
    user_id: int
    user_name: str
    rooms: Set[str] = field(default_factory=set)


class ConnectionRegistry:
    """
    Who is connected and which rooms each connection occupies.

    Owned by one hub instance. All reads return copies so callers can
    iterate while other coroutines join or leave.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: Dict[str, Connection] = {}
        self._by_user: Dict[int, Set[str]] = {}
        self._by_room: Dict[str, Set[str]] = {}

    def add(self, sid: str, user_id: int, user_name: str) -> Connection:
        with self._lock:
            connection = Connection(sid=sid, user_id=user_id, user_name=user_name)
            self._connections[sid] = connection
            self._by_user.setdefault(user_id, set()).add(sid)
            return connection

    def remove(self, sid: str) -> Optional[Connection]:
        """Drop a connection and its room memberships"""
        with self._lock:
            connection = self._connections.pop(sid, None)
            if connection is None:
                return None
            for room in connection.rooms:
                self._discard(self._by_room, room, sid)
            self._discard(self._by_user, connection.user_id, sid)
            return connection

    def join(self, sid: str, room: str) -> bool:
        with self._lock:
            connection = self._connections.get(sid)
            if connection is None:
                return False
            connection.rooms.add(room)
            self._by_room.setdefault(room, set()).add(sid)
            return True

    def leave(self, sid: str, room: str) -> bool:
        with self._lock:
            connection = self._connections.get(sid)
            if connection is None or room not in connection.rooms:
                return False
            connection.rooms.discard(room)
            self._discard(self._by_room, room, sid)
            return True

    def get(self, sid: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(sid)

    def in_room(self, sid: str, room: str) -> bool:
        with self._lock:
            return sid in self._by_room.get(room, ())

    def room_members(self, room: str) -> List[str]:
        with self._lock:
            return sorted(self._by_room.get(room, ()))

    def users_in_room(self, room: str) -> Set[int]:
        with self._lock:
            return {self._connections[sid].user_id for sid in self._by_room.get(room, ())}

    def all_sids(self) -> List[str]:
        with self._lock:
            return sorted(self._connections)

    def is_online(self, user_id: int) -> bool:
        with self._lock:
            return bool(self._by_user.get(user_id))

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    @staticmethod
    def _discard(index: Dict, key, sid: str) -> None:
        members = index.get(key)
        if members is None:
            return
        members.discard(sid)
        if not members:
            del index[key]
