"""
Room presence store for the collaboration relay.

All membership changes go through ``SessionStore``; each room has its own
``asyncio.Lock`` so joins, leaves and disconnects on one room are atomic with
respect to each other while different rooms proceed independently.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from structlog import get_logger

logger = get_logger()


@dataclass
class Participant:
    """A user present in a room through one or more sockets."""

    id: str
    name: str = ""
    image: str | None = None
    sockets: set[str] = field(default_factory=set)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "image": self.image,
            "sockets": sorted(self.sockets),
        }


class SessionStore:
    """In-process room membership with per-room locking."""

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, Participant]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _room_lock(self, room_id: str) -> AsyncIterator[None]:
        """Hold the room's lock; it is dropped once the room is gone and nobody waits on it."""
        lock = self._locks.setdefault(room_id, asyncio.Lock())
        self._lock_users[room_id] = self._lock_users.get(room_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[room_id] -= 1
            if not self._lock_users[room_id]:
                del self._lock_users[room_id]
                if room_id not in self._rooms:
                    del self._locks[room_id]

    async def join(self, room_id: str, user: dict[str, Any], socket_id: str) -> list[dict[str, Any]]:
        """Add *socket_id* for *user* to the room and return the new presence list."""
        user_id = str(user["id"])
        async with self._room_lock(room_id):
            room = self._rooms.setdefault(room_id, {})
            participant = room.get(user_id)
            if participant is None:
                participant = Participant(
                    id=user_id,
                    name=user.get("name", ""),
                    image=user.get("image"),
                )
                room[user_id] = participant
            participant.sockets.add(socket_id)
            logger.debug("User joined room", room_id=room_id, user_id=user_id, socket_id=socket_id)
            return self._snapshot(room)

    async def leave(self, room_id: str, user_id: str, socket_id: str) -> list[dict[str, Any]] | None:
        """Detach one socket of *user_id*; None if the user was not in the room."""
        if room_id not in self._rooms:
            return None
        async with self._room_lock(room_id):
            room = self._rooms.get(room_id)
            if room is None or user_id not in room:
                return None
            self._drop_socket(room, user_id, socket_id)
            snapshot = self._snapshot(room)
            self._discard_if_empty(room_id)
            return snapshot

    async def detach_socket(self, socket_id: str) -> dict[str, list[dict[str, Any]]]:
        """Remove *socket_id* everywhere; return the presence of each affected room."""
        changed: dict[str, list[dict[str, Any]]] = {}
        for room_id in list(self._rooms):
            async with self._room_lock(room_id):
                room = self._rooms.get(room_id)
                if room is None:
                    continue
                owners = [uid for uid, p in room.items() if socket_id in p.sockets]
                if not owners:
                    continue
                for user_id in owners:
                    self._drop_socket(room, user_id, socket_id)
                changed[room_id] = self._snapshot(room)
                self._discard_if_empty(room_id)
        return changed

    async def presence(self, room_id: str) -> list[dict[str, Any]]:
        if room_id not in self._rooms:
            return []
        async with self._room_lock(room_id):
            return self._snapshot(self._rooms.get(room_id, {}))

    def rooms(self) -> list[str]:
        return list(self._rooms)

    # ------------------------------------------------------------------
    # Internal (callers hold the room lock)
    # ------------------------------------------------------------------

    @staticmethod
    def _drop_socket(room: dict[str, Participant], user_id: str, socket_id: str) -> None:
        participant = room[user_id]
        participant.sockets.discard(socket_id)
        if not participant.sockets:
            del room[user_id]

    def _discard_if_empty(self, room_id: str) -> None:
        if not self._rooms.get(room_id):
            self._rooms.pop(room_id, None)

    @staticmethod
    def _snapshot(room: dict[str, Participant]) -> list[dict[str, Any]]:
        return [participant.to_dict() for participant in room.values()]
