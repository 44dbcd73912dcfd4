"""One game's state machine. Every mutation runs under the session's own lock."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from models.board import (
    BOARD_SIZE,
    EMPTY,
    FIRST_MARKER,
    Marker,
    check_winner,
    is_full,
    new_board,
    next_turn,
    winning_cells,
)
from models.messages import error_message, game_over_message, state_message
from models.session import GameState, Identity, Outcome, Player
from services.connection_manager import Channel, ConnectionManager
from services.stats_store import StatsStore

logger = logging.getLogger(__name__)

MAX_PLAYERS = 2


class JoinRejectedError(Exception):
    """The player cannot take a seat; the message is shown to the client."""


class SessionClosedError(Exception):
    """The session was torn down after it was looked up."""


@dataclass
class MoveResult:
    applied: bool
    state: GameState
    winner: Marker | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameSession:
    """
    Single source of truth for one game.

    Waiting --(2nd join)--> Playing --(line or full board)--> Finished --(reset)--> Waiting

    Broadcasts go through the ConnectionManager's buffered channels, so holding
    the lock while broadcasting never waits on a socket. Stats are recorded only
    after the lock is released.
    """

    def __init__(
        self,
        game_id: str,
        *,
        connections: ConnectionManager,
        stats_store: StatsStore | None = None,
        on_empty: Callable[[GameSession], Awaitable[None]] | None = None,
    ) -> None:
        self.id = game_id
        self._lock = asyncio.Lock()
        self._connections = connections
        self._stats_store = stats_store
        self._on_empty = on_empty

        self.board: list[str] = new_board()
        self.players: dict[str, Player] = {}
        self.current_turn: Marker = FIRST_MARKER
        self.state = GameState.WAITING
        self.winner: Marker | None = None
        self.winning_cells: list[int] = []
        self.last_activity = _utcnow()
        self.closed = False

    async def join(self, identity: Identity, channel: Channel) -> Marker:
        async with self._lock:
            if self.closed:
                raise SessionClosedError(self.id)
            if identity.id in self.players:
                raise JoinRejectedError("Already joined")
            if len(self.players) >= MAX_PLAYERS:
                raise JoinRejectedError("Game is full")
            if self.state is GameState.FINISHED:
                raise JoinRejectedError("Game is finished")

            taken = {p.marker for p in self.players.values()}
            marker = FIRST_MARKER if FIRST_MARKER not in taken else next_turn(FIRST_MARKER)
            self.players[identity.id] = Player(
                id=identity.id,
                name=identity.name,
                marker=marker,
                avatar_url=identity.avatar_url,
            )
            if len(self.players) == MAX_PLAYERS:
                self.state = GameState.PLAYING
            self._touch()

            await self._connections.register(self.id, identity.id, channel)
            await self._connections.send(
                self.id,
                identity.id,
                state_message(
                    "init",
                    board=self.board,
                    turn=self.current_turn,
                    state=self.state,
                    player=marker,
                ),
            )
            await self._broadcast_state(exclude=identity.id)
            logger.info(
                "[game_session] %s joined game_id=%r as %s (players=%d state=%s)",
                identity.id,
                self.id,
                marker.value,
                len(self.players),
                self.state.value,
            )
            return marker

    async def apply_move(self, player_id: str, position: int) -> MoveResult:
        outcomes: dict[str, Outcome] = {}
        async with self._lock:
            player = self.players.get(player_id)
            if (
                self.state is not GameState.PLAYING
                or player is None
                or player.marker != self.current_turn
                or not 0 <= position < BOARD_SIZE
                or self.board[position] != EMPTY
            ):
                logger.debug(
                    "[game_session] Ignored move game_id=%r player=%s position=%r state=%s turn=%s",
                    self.id,
                    player_id,
                    position,
                    self.state.value,
                    self.current_turn.value,
                )
                return MoveResult(applied=False, state=self.state)

            self.board[position] = player.marker
            self._touch()

            winner = check_winner(self.board)
            if winner is not None:
                self.state = GameState.FINISHED
                self.winner = winner
                self.winning_cells = winning_cells(self.board)
                outcomes = {pid: Outcome.LOSS for pid in self.players if pid != player_id}
                outcomes[player_id] = Outcome.WIN
                await self._broadcast_game_over()
                logger.info("[game_session] game_id=%r won by %s (%s)", self.id, player_id, winner.value)
            elif is_full(self.board):
                self.state = GameState.FINISHED
                outcomes = {pid: Outcome.DRAW for pid in self.players}
                await self._broadcast_game_over()
                logger.info("[game_session] game_id=%r ended in a draw", self.id)
            else:
                self.current_turn = next_turn(self.current_turn)
                await self._broadcast_state()
            result = MoveResult(applied=True, state=self.state, winner=self.winner)

        await self._record_outcomes(outcomes)
        return result

    async def reset(self) -> None:
        async with self._lock:
            self.board = new_board()
            self.current_turn = FIRST_MARKER
            self.winner = None
            self.winning_cells = []
            self.state = GameState.WAITING
            self._touch()
            await self._broadcast_state()
            logger.info("[game_session] game_id=%r reset (state=%s)", self.id, self.state.value)

    async def leave(self, player_id: str) -> None:
        """Free the player's seat. Safe to call more than once."""
        async with self._lock:
            if self.players.pop(player_id, None) is None:
                return
            await self._connections.unregister(self.id, player_id)
            self._touch()
            empty = not self.players
            if empty:
                self.closed = True
            else:
                if self.state is GameState.PLAYING:
                    self.state = GameState.WAITING
                await self._broadcast_state()
            logger.info(
                "[game_session] %s left game_id=%r (players=%d)", player_id, self.id, len(self.players)
            )

        if empty and self._on_empty is not None:
            await self._on_empty(self)

    async def close(self, reason: str) -> None:
        """Tear the session down, telling every seated player why and closing their channels."""
        async with self._lock:
            if self.closed:
                return
            self.closed = True
            if self.players:
                await self._connections.broadcast(self.id, list(self.players), error_message(reason))
            self.players.clear()
            await self._connections.close_game(self.id)
            logger.info("[game_session] game_id=%r closed: %s", self.id, reason)

    async def snapshot(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "game_id": self.id,
                "board": list(self.board),
                "turn": self.current_turn,
                "state": self.state,
                "winner": self.winner,
                "winning_cells": list(self.winning_cells),
                "players": [
                    {"id": p.id, "name": p.name, "marker": p.marker, "avatar_url": p.avatar_url}
                    for p in self.players.values()
                ],
                "last_activity": self.last_activity,
            }

    def _touch(self) -> None:
        self.last_activity = _utcnow()

    async def _broadcast_state(self, *, exclude: str | None = None) -> None:
        targets = [pid for pid in self.players if pid != exclude]
        if not targets:
            return
        await self._connections.broadcast(
            self.id,
            targets,
            state_message("update", board=self.board, turn=self.current_turn, state=self.state),
        )

    async def _broadcast_game_over(self) -> None:
        await self._connections.broadcast(
            self.id,
            list(self.players),
            game_over_message(
                board=self.board,
                turn=self.current_turn,
                state=self.state,
                winner=self.winner,
                winning_cells=self.winning_cells,
            ),
        )

    async def _record_outcomes(self, outcomes: dict[str, Outcome]) -> None:
        if self._stats_store is None:
            return
        for player_id, outcome in outcomes.items():
            try:
                await self._stats_store.record_outcome(player_id, outcome)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "[game_session] Recording %s for player_id=%s in game_id=%r FAILED: %s",
                    outcome.value,
                    player_id,
                    self.id,
                    exc,
                    exc_info=True,
                )
