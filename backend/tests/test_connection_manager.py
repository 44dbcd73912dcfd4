from __future__ import annotations

import pytest

from services.connection_manager import CLOSE, ConnectionManager


@pytest.mark.asyncio
async def test_send_reaches_registered_channel_only() -> None:
    manager = ConnectionManager()
    alice = manager.new_channel()
    await manager.register("g1", "alice", alice)

    assert await manager.send("g1", "alice", {"type": "update"}) is True
    assert alice.get_nowait() == {"type": "update"}

    # Unknown player or game: skipped, not an error.
    assert await manager.send("g1", "bob", {"type": "update"}) is False
    assert await manager.send("other", "alice", {"type": "update"}) is False
    assert alice.empty()


@pytest.mark.asyncio
async def test_broadcast_skips_unregistered_players() -> None:
    manager = ConnectionManager()
    alice, bob = manager.new_channel(), manager.new_channel()
    await manager.register("g1", "alice", alice)
    await manager.register("g1", "bob", bob)
    await manager.unregister("g1", "bob")

    delivered = await manager.broadcast("g1", ["alice", "bob", "carol"], {"type": "update"})

    assert delivered == 1
    assert alice.qsize() == 1
    assert bob.empty()


@pytest.mark.asyncio
async def test_full_channel_does_not_block_other_players() -> None:
    manager = ConnectionManager(queue_size=2)
    stalled, healthy = manager.new_channel(), manager.new_channel()
    await manager.register("g1", "stalled", stalled)
    await manager.register("g1", "healthy", healthy)

    for i in range(5):
        await manager.broadcast("g1", ["stalled", "healthy"], {"seq": i})

    # The stalled reader keeps only the newest payloads.
    assert [stalled.get_nowait()["seq"] for _ in range(2)] == [3, 4]
    assert healthy.qsize() == 2


@pytest.mark.asyncio
async def test_channels_are_scoped_per_game() -> None:
    manager = ConnectionManager()
    in_g1, in_g2 = manager.new_channel(), manager.new_channel()
    await manager.register("g1", "alice", in_g1)
    await manager.register("g2", "alice", in_g2)

    await manager.send("g2", "alice", {"game": "g2"})

    assert in_g1.empty()
    assert in_g2.get_nowait() == {"game": "g2"}
    assert await manager.registered("g1") == {"alice"}


@pytest.mark.asyncio
async def test_close_game_signals_every_writer_and_forgets_channels() -> None:
    manager = ConnectionManager()
    alice, bob = manager.new_channel(), manager.new_channel()
    await manager.register("g1", "alice", alice)
    await manager.register("g1", "bob", bob)

    await manager.close_game("g1")

    assert alice.get_nowait() is CLOSE
    assert bob.get_nowait() is CLOSE
    assert await manager.registered("g1") == set()
