"""
WebSocket relay for collaborative editing.

Clients exchange JSON envelopes ``{"event": <name>, "data": {...}}``. The relay
keeps no document state: it forwards edits, file operations, terminal output
and voice signaling to the other members of a room and tracks presence through
``SessionStore``.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from structlog import get_logger

from coderunner.collab.sessions import SessionStore

logger = get_logger()
router = APIRouter(tags=["collab"])


class ConnectionHub:
    """Tracks open sockets and which rooms each one has joined."""

    def __init__(self, store: SessionStore | None = None) -> None:
        self.store = store or SessionStore()
        self._sockets: dict[str, WebSocket] = {}
        self._rooms: dict[str, set[str]] = {}

    def connect(self, websocket: WebSocket) -> str:
        socket_id = uuid4().hex
        self._sockets[socket_id] = websocket
        logger.info("Socket connected", socket_id=socket_id)
        return socket_id

    async def disconnect(self, socket_id: str) -> None:
        self._sockets.pop(socket_id, None)
        for members in self._rooms.values():
            members.discard(socket_id)
        self._rooms = {room: members for room, members in self._rooms.items() if members}

        for room_id, presence in (await self.store.detach_socket(socket_id)).items():
            await self.emit(room_id, "presence-update", presence)
        logger.info("Socket disconnected", socket_id=socket_id)

    def enter(self, room_id: str, socket_id: str) -> None:
        self._rooms.setdefault(room_id, set()).add(socket_id)

    def exit(self, room_id: str, socket_id: str) -> None:
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.discard(socket_id)
        if not members:
            del self._rooms[room_id]

    async def emit(
        self, room_id: str, event: str, data: Any, exclude: str | None = None
    ) -> None:
        """Send to every socket in the room, optionally skipping the sender."""
        for socket_id in list(self._rooms.get(room_id, ())):
            if socket_id != exclude:
                await self.send_to(socket_id, event, data)

    async def send_to(self, socket_id: str, event: str, data: Any) -> None:
        websocket = self._sockets.get(socket_id)
        if websocket is None:
            return
        try:
            await websocket.send_json({"event": event, "data": data})
        except (RuntimeError, WebSocketDisconnect) as exc:
            logger.warning("Failed to deliver event", socket_id=socket_id, event_name=event, error=str(exc))


Handler = Callable[[ConnectionHub, str, dict[str, Any]], Awaitable[None]]
_HANDLERS: dict[str, Handler] = {}


def on(event: str) -> Callable[[Handler], Handler]:
    def decorator(fn: Handler) -> Handler:
        _HANDLERS[event] = fn
        return fn
    return decorator


@on("join-room")
async def _join_room(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    room_id, user = data["roomId"], data["user"]
    user_id = user["id"]
    if user_id is None:
        raise KeyError("id")
    hub.enter(room_id, socket_id)
    await hub.emit(room_id, "user-joined", {"userId": user_id, "socketId": socket_id}, exclude=socket_id)
    presence = await hub.store.join(room_id, user, socket_id)
    await hub.emit(room_id, "presence-update", presence)


@on("leave-room")
async def _leave_room(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    room_id = data["roomId"]
    hub.exit(room_id, socket_id)
    presence = await hub.store.leave(room_id, str(data["userId"]), socket_id)
    if presence is not None:
        await hub.emit(room_id, "presence-update", presence)


@on("code-change")
async def _code_change(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    await hub.emit(
        data["roomId"], "code-update",
        {"fileId": data.get("fileId"), "code": data.get("code")},
        exclude=socket_id,
    )


@on("file-add")
async def _file_add(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    await hub.emit(data["roomId"], "file-added", data.get("file"))


@on("file-delete")
async def _file_delete(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    await hub.emit(data["roomId"], "file-deleted", data.get("fileId"))


@on("file-rename")
async def _file_rename(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    await hub.emit(
        data["roomId"], "file-renamed",
        {"fileId": data.get("fileId"), "newName": data.get("newName")},
    )


@on("terminal-output")
async def _terminal_output(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    fields = ("roomId", "output", "error", "ranBy", "timeStamp")
    await hub.emit(data["roomId"], "terminal-update", {key: data.get(key) for key in fields})


async def _forward_voice(hub: ConnectionHub, socket_id: str, data: dict[str, Any], event: str, key: str) -> None:
    await hub.send_to(
        data["to"], event,
        {"from": socket_id, key: data.get(key), "roomId": data.get("roomId")},
    )


@on("voice-offer")
async def _voice_offer(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    await _forward_voice(hub, socket_id, data, "voice-offer", "offer")


@on("voice-answer")
async def _voice_answer(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    await _forward_voice(hub, socket_id, data, "voice-answer", "answer")


@on("voice-candidate")
async def _voice_candidate(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    await _forward_voice(hub, socket_id, data, "voice-candidate", "candidate")


@on("mic-status")
async def _mic_status(hub: ConnectionHub, socket_id: str, data: dict[str, Any]) -> None:
    await hub.emit(
        data["roomId"], "mic-status-update",
        {"userId": data.get("userId"), "status": data.get("status")},
    )


async def dispatch(hub: ConnectionHub, socket_id: str, message: Any) -> None:
    """Route one client envelope to its handler; malformed messages are dropped."""
    if not isinstance(message, dict) or not isinstance(message.get("data"), dict):
        logger.warning("Malformed relay message", socket_id=socket_id)
        return
    event = message.get("event")
    handler = _HANDLERS.get(event) if isinstance(event, str) else None
    if handler is None:
        logger.debug("Unknown relay event", socket_id=socket_id, event_name=event)
        return
    try:
        await handler(hub, socket_id, message["data"])
    except (KeyError, TypeError) as exc:
        logger.warning("Invalid relay payload", socket_id=socket_id, event_name=event, error=str(exc))


hub = ConnectionHub()


@router.websocket("/socket")
async def relay_socket(websocket: WebSocket) -> None:
    """Persistent bidirectional connection for one client."""
    await websocket.accept()
    socket_id = hub.connect(websocket)
    await websocket.send_json({"event": "connected", "data": {"socketId": socket_id}})
    try:
        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
            except ValueError:
                logger.warning("Relay message is not JSON", socket_id=socket_id)
                continue
            await dispatch(hub, socket_id, message)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(socket_id)
