from .connection_manager import ConnectionManager
from .stats_store import InMemoryStatsStore, StatsStore, SupabaseStatsStore
from .player_token import create_player_token
from .identity import IdentityProvider, JwtIdentityProvider, UnauthorizedError
from .game_session import GameSession, JoinRejectedError, SessionClosedError
from .registry import SessionRegistry

__all__ = [
    "ConnectionManager",
    "GameSession",
    "IdentityProvider",
    "InMemoryStatsStore",
    "JoinRejectedError",
    "JwtIdentityProvider",
    "SessionClosedError",
    "SessionRegistry",
    "StatsStore",
    "SupabaseStatsStore",
    "UnauthorizedError",
    "create_player_token",
]
