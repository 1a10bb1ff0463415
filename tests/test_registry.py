import pytest

from collab.realtime.registry import RoomRegistry
from conftest import FakeEmitter


def test_join_is_idempotent():
    registry = RoomRegistry(FakeEmitter())

    assert registry.join("a", 7) is True
    assert registry.join("a", 7) is False
    assert registry.members(7) == ["a"]


def test_leave_unknown_member_is_a_noop():
    registry = RoomRegistry(FakeEmitter())
    registry.join("a", 7)

    assert registry.leave("b", 7) is False
    assert registry.leave("a", 8) is False
    assert registry.members(7) == ["a"]


def test_empty_rooms_are_dropped():
    registry = RoomRegistry(FakeEmitter())
    registry.join("a", 7)
    registry.join("b", 9)

    registry.leave("a", 7)

    assert registry.rooms() == [9]
    assert not registry.is_member("a", 7)


@pytest.mark.asyncio
async def test_broadcast_skips_sender_and_keeps_join_order():
    emitter = FakeEmitter()
    registry = RoomRegistry(emitter)
    for sid in ("c", "a", "b"):
        registry.join(sid, 7)
    registry.join("other-room", 8)

    delivered = await registry.broadcast(7, "ping", {"n": 1}, exclude="a")

    assert delivered == 2
    assert [to for _, _, to in emitter.calls] == ["c", "b"]


@pytest.mark.asyncio
async def test_broadcasts_to_one_room_arrive_in_order():
    emitter = FakeEmitter()
    registry = RoomRegistry(emitter)
    registry.join("a", 7)
    registry.join("b", 7)

    await registry.broadcast(7, "first", 1, exclude="a")
    await registry.broadcast(7, "second", 2, exclude="a")

    assert emitter.received("b") == [("first", 1), ("second", 2)]


@pytest.mark.asyncio
async def test_broadcast_to_unknown_room_sends_nothing():
    emitter = FakeEmitter()
    registry = RoomRegistry(emitter)

    assert await registry.broadcast(404, "ping", None) == 0
    assert emitter.calls == []
