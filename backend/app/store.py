"""Game stores built once per application and shared through ``app.state.stores``."""

import logging
from dataclasses import dataclass

from app.config import Settings
from services.connection_manager import ConnectionManager
from services.identity import IdentityProvider, JwtIdentityProvider
from services.registry import SessionRegistry
from services.stats_store import InMemoryStatsStore, StatsStore, SupabaseStatsStore

logger = logging.getLogger(__name__)


@dataclass
class GameStores:
    registry: SessionRegistry
    connections: ConnectionManager
    stats_store: StatsStore
    identity_provider: IdentityProvider | None = None

    async def aclose(self) -> None:
        await self.registry.close_all()
        await self.stats_store.aclose()


def build_stores(settings: Settings) -> GameStores:
    connections = ConnectionManager(queue_size=settings.outbound_queue_size)

    stats_store: StatsStore
    if settings.supabase_url and settings.supabase_service_role_key:
        stats_store = SupabaseStatsStore(settings.supabase_url, settings.supabase_service_role_key)
        logger.info("[store] Persisting stats to Supabase at %s", settings.supabase_url)
    else:
        stats_store = InMemoryStatsStore()
        logger.info("[store] SUPABASE_URL/SUPABASE_SERVICE_ROLE_KEY not set; stats kept in memory.")

    identity_provider: IdentityProvider | None = None
    if settings.player_token_secret:
        identity_provider = JwtIdentityProvider(settings.player_token_secret)
    else:
        logger.warning("[store] PLAYER_TOKEN_SECRET not set; every game socket will be refused.")

    return GameStores(
        registry=SessionRegistry(connections=connections, stats_store=stats_store),
        connections=connections,
        stats_store=stats_store,
        identity_provider=identity_provider,
    )
