from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from app.store import GameStores
from models.board import Marker
from models.messages import MoveCommand, NewGameCommand, decode_command, error_message
from models.session import Identity
from services.connection_manager import CLOSE, Channel
from services.game_session import GameSession, JoinRejectedError, SessionClosedError
from services.identity import UnauthorizedError
from services.registry import SessionRegistry

router = APIRouter(tags=["game"])
logger = logging.getLogger(__name__)

MAX_GAME_ID_LENGTH = 64


async def _resolve_identity(stores: GameStores, token: str) -> Identity:
    if stores.identity_provider is None:
        raise UnauthorizedError("Player tokens are not configured")
    return await stores.identity_provider.resolve(token)


async def _join_session(
    registry: SessionRegistry,
    game_id: str,
    identity: Identity,
    channel: Channel,
) -> tuple[GameSession, Marker]:
    while True:
        session = await registry.get_or_create(game_id)
        try:
            return session, await session.join(identity, channel)
        except SessionClosedError:
            # Emptied between lookup and join; the next lookup builds a fresh one.
            logger.debug("[game_ws] Session game_id=%r closed before join; retrying", game_id)


async def _pump(websocket: WebSocket, channel: Channel, game_id: str) -> None:
    """Drain one player's outbound channel onto the socket."""
    while True:
        payload = await channel.get()
        if payload is CLOSE:
            logger.info("[game_ws] Server closed channel for game_id=%r", game_id)
            with suppress(RuntimeError):
                await websocket.close(code=status.WS_1001_GOING_AWAY)
            return
        try:
            await websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.info("[game_ws] send failed game_id=%r: %s", game_id, e)
            return


@router.websocket("/ws")
async def ws_game(websocket: WebSocket, game: str = "", token: str = "") -> None:
    """
    Play one seat of a game.

    Query params: ``game`` (game id, created on first join) and ``token`` (player credential).
    The socket is refused with 1008 before accept when either is missing or the
    token does not verify.
    """
    stores: GameStores = websocket.app.state.stores
    game_id = game.strip()
    logger.info("[game_ws] Client connecting for game_id=%r", game_id)
    if not game_id or len(game_id) > MAX_GAME_ID_LENGTH or not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing game ID or token")
        return
    try:
        identity = await _resolve_identity(stores, token)
    except UnauthorizedError as e:
        logger.warning("[game_ws] Unauthorized for game_id=%r: %s", game_id, e)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unauthorized")
        return

    await websocket.accept()
    channel = stores.connections.new_channel()
    try:
        session, marker = await _join_session(stores.registry, game_id, identity, channel)
    except JoinRejectedError as e:
        logger.info("[game_ws] %s refused from game_id=%r: %s", identity.id, game_id, e)
        await websocket.send_json(error_message(str(e)))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    writer = asyncio.create_task(_pump(websocket, channel, game_id))
    close_code: int | None = None
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                logger.warning(
                    "[game_ws] Binary frame from %s (%s) game_id=%r", identity.id, marker.value, game_id
                )
                close_code = status.WS_1003_UNSUPPORTED_DATA
                break
            command = decode_command(raw)
            if isinstance(command, MoveCommand):
                await session.apply_move(identity.id, command.position)
            elif isinstance(command, NewGameCommand):
                await session.reset()
            else:
                logger.debug("[game_ws] Ignoring unknown command game_id=%r: %.60s", game_id, raw)
    except ValidationError as e:
        logger.warning(
            "[game_ws] Protocol violation from %s (%s) game_id=%r: %s",
            identity.id,
            marker.value,
            game_id,
            e.errors(include_url=False),
        )
        close_code = status.WS_1003_UNSUPPORTED_DATA
    except RuntimeError as e:
        # The writer already closed the socket (session expired or shutting down).
        logger.info("[game_ws] Socket closed by server for game_id=%r: %s", game_id, e)
    finally:
        try:
            writer.cancel()
            with suppress(asyncio.CancelledError):
                await writer
        finally:
            await session.leave(identity.id)
            logger.info("[game_ws] %s disconnected from game_id=%r", identity.id, game_id)

    if close_code is not None:
        with suppress(RuntimeError):
            await websocket.close(code=close_code)
