import pytest
from fastapi.testclient import TestClient

from coderunner.collab.relay import ConnectionHub, dispatch
from coderunner.main import app


def receive_event(ws, name: str) -> dict:
    while True:
        message = ws.receive_json()
        if message["event"] == name:
            return message["data"]


def test_join_edit_and_disconnect() -> None:
    with TestClient(app) as client:
        with client.websocket_connect("/api/socket") as bob:
            bob_id = receive_event(bob, "connected")["socketId"]
            bob.send_json({"event": "join-room", "data": {"roomId": "r1", "user": {"id": "bob", "name": "Bob"}}})
            assert [p["id"] for p in receive_event(bob, "presence-update")] == ["bob"]

            with client.websocket_connect("/api/socket") as alice:
                receive_event(alice, "connected")
                alice.send_json({"event": "join-room", "data": {"roomId": "r1", "user": {"id": "alice"}}})

                assert receive_event(bob, "user-joined")["userId"] == "alice"
                assert {p["id"] for p in receive_event(bob, "presence-update")} == {"bob", "alice"}
                receive_event(alice, "presence-update")

                alice.send_json({"event": "code-change", "data": {"roomId": "r1", "fileId": "f1", "code": "x = 1"}})
                assert receive_event(bob, "code-update") == {"fileId": "f1", "code": "x = 1"}

                alice.send_json({"event": "voice-offer", "data": {"roomId": "r1", "offer": "sdp", "to": bob_id}})
                offer = receive_event(bob, "voice-offer")
                assert offer["offer"] == "sdp" and offer["roomId"] == "r1"

            # Alice's socket closed: Bob sees her leave
            assert [p["id"] for p in receive_event(bob, "presence-update")] == ["bob"]


class RecordingSocket:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_json(self, message: dict) -> None:
        self.sent.append(message)


@pytest.mark.asyncio
@pytest.mark.parametrize("user", [{"name": "nobody"}, {"id": None}, "bob"])
async def test_join_without_user_id_does_not_subscribe(user) -> None:
    hub = ConnectionHub()
    socket = RecordingSocket()
    socket_id = hub.connect(socket)

    await dispatch(hub, socket_id, {"event": "join-room", "data": {"roomId": "r1", "user": user}})
    await hub.emit("r1", "code-update", {"fileId": "f1", "code": ""})

    assert socket.sent == []
    assert hub.store.rooms() == []
