"""Win/loss/draw counters per player, kept in memory or in a hosted Supabase table."""

from __future__ import annotations

import logging
from dataclasses import asdict, replace
from typing import Protocol

import httpx

from models.session import Outcome, PlayerStats

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "stats"


class StatsStore(Protocol):
    async def record_outcome(self, player_id: str, outcome: Outcome) -> None: ...

    async def get_stats(self, player_id: str) -> PlayerStats | None: ...

    async def aclose(self) -> None: ...


class InMemoryStatsStore:
    def __init__(self) -> None:
        self._stats: dict[str, PlayerStats] = {}

    async def record_outcome(self, player_id: str, outcome: Outcome) -> None:
        self._stats.setdefault(player_id, PlayerStats(player_id=player_id)).apply(outcome)

    async def get_stats(self, player_id: str) -> PlayerStats | None:
        stats = self._stats.get(player_id)
        return replace(stats) if stats is not None else None

    async def aclose(self) -> None:
        return None


class SupabaseStatsStore:
    """
    Stats rows in a Supabase table, reached through its PostgREST endpoint.

    Rows are keyed by ``player_id`` with integer ``wins``, ``losses`` and ``draws``
    columns. Recording reads the current row, increments it and upserts it back.
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        *,
        table: str = DEFAULT_TABLE,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._table = table
        self._client = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": service_role_key,
                "Authorization": f"Bearer {service_role_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    async def get_stats(self, player_id: str) -> PlayerStats | None:
        response = await self._client.get(
            f"/{self._table}",
            params={"player_id": f"eq.{player_id}", "select": "player_id,wins,losses,draws"},
        )
        response.raise_for_status()
        rows = response.json()
        if not rows:
            return None
        row = rows[0]
        return PlayerStats(
            player_id=player_id,
            wins=int(row.get("wins") or 0),
            losses=int(row.get("losses") or 0),
            draws=int(row.get("draws") or 0),
        )

    async def record_outcome(self, player_id: str, outcome: Outcome) -> None:
        stats = await self.get_stats(player_id) or PlayerStats(player_id=player_id)
        stats.apply(outcome)
        response = await self._client.post(
            f"/{self._table}",
            json=asdict(stats),
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        response.raise_for_status()
        logger.info(
            "[stats_store] Recorded %s for player_id=%s (w=%d l=%d d=%d)",
            outcome.value,
            player_id,
            stats.wins,
            stats.losses,
            stats.draws,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
