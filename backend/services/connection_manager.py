from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

logger = logging.getLogger(__name__)

# Queued in place of a payload to tell the connection's writer to close the socket.
CLOSE = None

Channel = asyncio.Queue[dict[str, Any] | None]


class ConnectionManager:
    """
    Routes outbound game messages to the live channel of each seated player.

    - Each connection owns an asyncio.Queue; its writer task drains it onto the socket.
    - Delivery never blocks the caller: a full queue drops its oldest payload.
      Every state message is a full snapshot, so the newest one is enough.
    - Channels are keyed by (game_id, player_id) and carry no game state.
    """

    def __init__(self, *, queue_size: int = 32) -> None:
        self._lock = asyncio.Lock()
        self._queue_size = queue_size
        self._channels: dict[str, dict[str, Channel]] = defaultdict(dict)

    def new_channel(self) -> Channel:
        return asyncio.Queue(maxsize=self._queue_size)

    async def register(self, game_id: str, player_id: str, channel: Channel) -> None:
        async with self._lock:
            self._channels[game_id][player_id] = channel

    async def unregister(self, game_id: str, player_id: str) -> None:
        async with self._lock:
            channels = self._channels.get(game_id)
            if not channels:
                return
            channels.pop(player_id, None)
            if not channels:
                self._channels.pop(game_id, None)

    async def registered(self, game_id: str) -> set[str]:
        async with self._lock:
            return set(self._channels.get(game_id, {}))

    async def send(self, game_id: str, player_id: str, payload: dict[str, Any]) -> bool:
        """Best-effort delivery; a player without a channel is skipped."""
        async with self._lock:
            channel = self._channels.get(game_id, {}).get(player_id)
        if channel is None:
            return False
        self._deliver(channel, payload)
        return True

    async def broadcast(
        self,
        game_id: str,
        player_ids: Iterable[str],
        payload: dict[str, Any],
    ) -> int:
        async with self._lock:
            registered = self._channels.get(game_id, {})
            targets = [registered[pid] for pid in player_ids if pid in registered]
        for channel in targets:
            self._deliver(channel, payload)
        return len(targets)

    async def close_game(self, game_id: str) -> None:
        """Unregister every channel of a game and ask each writer to close its socket."""
        async with self._lock:
            channels = self._channels.pop(game_id, {})
        for channel in channels.values():
            self._deliver(channel, CLOSE)
        if channels:
            logger.info("[connections] Closed %d channel(s) for game_id=%r", len(channels), game_id)

    @staticmethod
    def _deliver(channel: Channel, payload: dict[str, Any] | None) -> None:
        if channel.full():
            try:
                _ = channel.get_nowait()
            except asyncio.QueueEmpty:
                pass
            logger.warning("[connections] Outbound channel full; dropped oldest payload.")
        try:
            channel.put_nowait(payload)
        except asyncio.QueueFull:
            # Raced between full-check and put; drop.
            pass
