"""In-memory registry of live game sessions. Keyed by caller-supplied game ID."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from services.connection_manager import ConnectionManager
from services.game_session import GameSession
from services.stats_store import StatsStore

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Owns the existence of GameSessions.

    The registry lock only guards the id -> session map; it is never held while a
    session lock is taken, so unrelated games never wait on each other.
    """

    def __init__(
        self,
        *,
        connections: ConnectionManager,
        stats_store: StatsStore | None = None,
    ) -> None:
        self._lock = asyncio.Lock()
        self._sessions: dict[str, GameSession] = {}
        self._connections = connections
        self._stats_store = stats_store

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._sessions

    async def get_or_create(self, game_id: str) -> GameSession:
        async with self._lock:
            session = self._sessions.get(game_id)
            # A closed session is on its way out; its replacement starts fresh.
            if session is not None and not session.closed:
                return session
            session = GameSession(
                game_id,
                connections=self._connections,
                stats_store=self._stats_store,
                on_empty=self._session_emptied,
            )
            self._sessions[game_id] = session
            logger.info("[registry] Created session game_id=%r (live=%d)", game_id, len(self._sessions))
            return session

    async def get(self, game_id: str) -> GameSession | None:
        async with self._lock:
            return self._sessions.get(game_id)

    async def remove(self, game_id: str, session: GameSession | None = None) -> bool:
        """Drop the entry; when ``session`` is given, only if it is still the registered one."""
        async with self._lock:
            current = self._sessions.get(game_id)
            if current is None or (session is not None and current is not session):
                return False
            del self._sessions[game_id]
        logger.info("[registry] Removed session game_id=%r (live=%d)", game_id, len(self._sessions))
        return True

    async def sweep_idle(self, max_idle: timedelta, *, now: datetime | None = None) -> list[str]:
        """Remove and close sessions with no activity for ``max_idle``. Returns their ids."""
        cutoff = (now or datetime.now(timezone.utc)) - max_idle
        async with self._lock:
            stale = [s for s in self._sessions.values() if s.last_activity < cutoff]
            for session in stale:
                del self._sessions[session.id]
        for session in stale:
            await session.close("Session expired")
        if stale:
            logger.info("[registry] Swept %d idle session(s) (live=%d)", len(stale), len(self._sessions))
        return [s.id for s in stale]

    async def close_all(self, reason: str = "Server shutting down") -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.close(reason)

    async def _session_emptied(self, session: GameSession) -> None:
        await self.remove(session.id, session)


async def run_idle_sweeper(
    registry: SessionRegistry,
    *,
    max_idle: timedelta,
    interval: float,
) -> None:
    """Periodically sweep idle sessions until cancelled."""
    logger.info(
        "[registry] Idle sweeper started (timeout=%ss interval=%ss)", max_idle.total_seconds(), interval
    )
    while True:
        await asyncio.sleep(interval)
        try:
            await registry.sweep_idle(max_idle)
        except Exception as exc:  # noqa: BLE001
            logger.error("[registry] Idle sweep FAILED: %s", exc, exc_info=True)
