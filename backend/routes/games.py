"""Game REST API: guest players, game snapshots and player stats."""

import logging
import secrets
from datetime import datetime

import httpx
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from app.store import GameStores
from models.board import Marker
from models.session import GameState
from services.player_token import create_player_token

router = APIRouter(tags=["games"])
logger = logging.getLogger(__name__)

# Avoid 0/O, 1/I/l in player IDs so they survive being read aloud or retyped.
_PLAYER_ALPHABET = "23456789abcdefghjkmnpqrstuvwxyz"
_PLAYER_ID_LENGTH = 12


class GuestPlayerRequest(BaseModel):
    name: str = Field(min_length=1, max_length=40)
    avatar_url: str | None = None


class GuestPlayerResponse(BaseModel):
    player_id: str
    name: str
    token: str


class PlayerView(BaseModel):
    id: str
    name: str
    marker: Marker
    avatar_url: str | None = None


class GameReadResponse(BaseModel):
    """Game snapshot for polling. GET /api/games/{id}."""

    game_id: str
    state: GameState
    board: list[str]
    turn: Marker
    winner: Marker | None = None
    winning_cells: list[int] = []
    players: list[PlayerView] = []
    last_activity: datetime


class StatsResponse(BaseModel):
    player_id: str
    wins: int
    losses: int
    draws: int


def _stores(request: Request) -> GameStores:
    return request.app.state.stores


def _generate_player_id() -> str:
    return "".join(secrets.choice(_PLAYER_ALPHABET) for _ in range(_PLAYER_ID_LENGTH))


@router.post("/players", response_model=GuestPlayerResponse, status_code=201)
def create_guest_player(body: GuestPlayerRequest, request: Request) -> GuestPlayerResponse:
    """Issue a guest identity and the token to present on the game socket."""
    secret = request.app.state.settings.player_token_secret
    if not secret:
        raise HTTPException(
            status_code=503,
            detail="Player tokens not configured (PLAYER_TOKEN_SECRET)",
        )
    player_id = _generate_player_id()
    name = body.name.strip() or player_id
    token = create_player_token(secret, player_id, name, avatar_url=body.avatar_url)
    logger.info("[games] Guest player issued player_id=%s", player_id)
    return GuestPlayerResponse(player_id=player_id, name=name, token=token)


@router.get("/games/{game_id}", response_model=GameReadResponse, status_code=200)
async def get_game(game_id: str, request: Request) -> GameReadResponse:
    session = await _stores(request).registry.get(game_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Game not found")
    snapshot = await session.snapshot()
    return GameReadResponse(**snapshot)


@router.get("/stats", response_model=StatsResponse, status_code=200)
async def get_stats(
    request: Request,
    player_id: str = Query(..., min_length=1, description="Player whose record to return"),
) -> StatsResponse:
    try:
        stats = await _stores(request).stats_store.get_stats(player_id)
    except httpx.HTTPError as e:
        logger.error("[games] Stats lookup FAILED for player_id=%s: %s", player_id, e)
        raise HTTPException(status_code=503, detail="Stats backend unavailable") from e
    if stats is None:
        raise HTTPException(status_code=404, detail="Stats not found")
    return StatsResponse(
        player_id=stats.player_id,
        wins=stats.wins,
        losses=stats.losses,
        draws=stats.draws,
    )
