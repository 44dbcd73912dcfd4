"""Resolve the credential a client presents on the game socket to a player identity."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

import jwt

from models.session import Identity
from services.player_token import TOKEN_ALGORITHM

logger = logging.getLogger(__name__)


class UnauthorizedError(Exception):
    """The credential is missing, expired or not ours."""


class IdentityProvider(Protocol):
    async def resolve(self, token: str) -> Identity: ...


class JwtIdentityProvider:
    def __init__(
        self,
        secret: str,
        *,
        algorithms: Sequence[str] = (TOKEN_ALGORITHM,),
        leeway: int = 60,
    ) -> None:
        self._secret = secret
        self._algorithms = list(algorithms)
        self._leeway = leeway

    async def resolve(self, token: str) -> Identity:
        if not token:
            raise UnauthorizedError("Missing token")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=self._algorithms,
                leeway=self._leeway,
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as exc:
            raise UnauthorizedError(str(exc)) from exc

        player_id = str(claims["sub"]).strip()
        if not player_id:
            raise UnauthorizedError("Empty subject")
        avatar_url = claims.get("avatar_url")
        return Identity(
            id=player_id,
            name=str(claims.get("name") or player_id),
            avatar_url=str(avatar_url) if avatar_url else None,
        )
