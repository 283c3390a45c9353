import asyncio

import pytest

from coderunner.collab.sessions import SessionStore

ALICE = {"id": "u1", "name": "Alice"}
BOB = {"id": "u2", "name": "Bob", "image": "bob.png"}


@pytest.mark.asyncio
async def test_join_merges_sockets_of_same_user() -> None:
    store = SessionStore()

    await store.join("room", ALICE, "s1")
    presence = await store.join("room", ALICE, "s2")

    assert presence == [{"id": "u1", "name": "Alice", "image": None, "sockets": ["s1", "s2"]}]


@pytest.mark.asyncio
async def test_leave_removes_user_after_last_socket() -> None:
    store = SessionStore()
    await store.join("room", ALICE, "s1")
    await store.join("room", ALICE, "s2")
    await store.join("room", BOB, "s3")

    after_first = await store.leave("room", "u1", "s1")
    after_second = await store.leave("room", "u1", "s2")

    assert [p["id"] for p in after_first] == ["u1", "u2"]
    assert [p["id"] for p in after_second] == ["u2"]


@pytest.mark.asyncio
async def test_leave_unknown_user_returns_none() -> None:
    store = SessionStore()

    assert await store.leave("room", "ghost", "s1") is None


@pytest.mark.asyncio
async def test_detach_socket_reports_every_affected_room() -> None:
    store = SessionStore()
    await store.join("r1", ALICE, "s1")
    await store.join("r2", ALICE, "s1")
    await store.join("r2", BOB, "s2")
    await store.join("r3", BOB, "s2")

    changed = await store.detach_socket("s1")

    assert changed == {"r1": [], "r2": [{"id": "u2", "name": "Bob", "image": "bob.png", "sockets": ["s2"]}]}
    assert sorted(store.rooms()) == ["r2", "r3"]


@pytest.mark.asyncio
async def test_concurrent_joins_are_not_lost() -> None:
    store = SessionStore()

    await asyncio.gather(*(store.join("room", {"id": f"u{i}"}, f"s{i}") for i in range(50)))

    assert len(await store.presence("room")) == 50


@pytest.mark.asyncio
async def test_room_locks_are_released_with_their_rooms() -> None:
    store = SessionStore()

    for i in range(1000):
        assert await store.leave(f"ghost-{i}", "u1", "s1") is None
    assert await store.presence("ghost-0") == []
    await store.join("room", ALICE, "s1")
    await store.detach_socket("s1")

    assert store.rooms() == []
    assert store._locks == {}
