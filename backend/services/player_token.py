"""Issue signed player tokens (JWT) presented on the game socket."""

import time

import jwt

TOKEN_ALGORITHM = "HS256"
TOKEN_VALIDITY_SECONDS = 7 * 24 * 3600


def create_player_token(
    secret: str,
    player_id: str,
    name: str,
    *,
    avatar_url: str | None = None,
    expiration_seconds: int = TOKEN_VALIDITY_SECONDS,
) -> str:
    """Create a player JWT whose ``sub`` is the player id.
    Sets iat 60s in the past so a verifier with a slightly slow clock accepts it.
    """
    now = int(time.time())
    payload: dict[str, str | int] = {
        "sub": player_id,
        "name": name,
        "iat": now - 60,
        "exp": now + expiration_seconds,
    }
    if avatar_url:
        payload["avatar_url"] = avatar_url
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)
