import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    player_token_secret: str = ""
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    # Sessions idle this long are expired by the sweeper (seconds).
    idle_session_timeout_sec: int = 1800
    # 0 disables the sweeper.
    session_sweep_interval_sec: int = 60
    outbound_queue_size: int = 32
    cors_allow_origins: tuple[str, ...] = field(default_factory=lambda: ("*",))


def _env_str(name: str) -> str:
    return os.environ.get(name, "").strip()


def _env_int(name: str, default: int) -> int:
    raw = _env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[config] %s=%r is not an integer; using %d", name, raw, default)
        return default


def load_settings() -> Settings:
    origins = tuple(o.strip() for o in _env_str("CORS_ALLOW_ORIGINS").split(",") if o.strip())
    return Settings(
        player_token_secret=_env_str("PLAYER_TOKEN_SECRET"),
        supabase_url=_env_str("SUPABASE_URL"),
        supabase_service_role_key=_env_str("SUPABASE_SERVICE_ROLE_KEY"),
        idle_session_timeout_sec=_env_int("IDLE_SESSION_TIMEOUT_SEC", 1800),
        session_sweep_interval_sec=_env_int("SESSION_SWEEP_INTERVAL_SEC", 60),
        outbound_queue_size=_env_int("OUTBOUND_QUEUE_SIZE", 32),
        cors_allow_origins=origins or ("*",),
    )
