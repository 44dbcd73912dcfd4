"""
Game socket envelope.

Inbound commands:
  {"type": "move", "position": int}
  {"type": "new_game"}

Outbound messages:
  {"type": "init"|"update"|"gameover"|"error", "board", "turn", "state",
   "player"?, "winner"?, "winning_cells"?, "error"?}
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from .board import Marker
from .session import GameState


class CommandEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str


class MoveCommand(BaseModel):
    type: Literal["move"] = "move"
    position: int


class NewGameCommand(BaseModel):
    type: Literal["new_game"] = "new_game"


Command = MoveCommand | NewGameCommand


def decode_command(raw: str | bytes) -> Command | None:
    """
    Decode one inbound frame into a tagged command.

    Returns None for a well-formed frame whose ``type`` tag is not recognised.
    Raises pydantic.ValidationError when the frame is not a JSON object with a
    string ``type`` or when a known command is missing its fields.
    """
    envelope = CommandEnvelope.model_validate_json(raw)
    if envelope.type == "move":
        return MoveCommand.model_validate(envelope.model_dump())
    if envelope.type == "new_game":
        return NewGameCommand()
    return None


class GameMessage(BaseModel):
    type: Literal["init", "update", "gameover", "error"]
    board: list[str] | None = None
    turn: Marker | None = None
    state: GameState | None = None
    player: Marker | None = None
    winner: Marker | None = None
    winning_cells: list[int] | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        # Only fields passed explicitly go on the wire, so a draw still carries "winner": null.
        return self.model_dump(mode="json", exclude_unset=True)


def state_message(
    kind: Literal["init", "update"],
    *,
    board: Sequence[str],
    turn: Marker,
    state: GameState,
    player: Marker | None = None,
) -> dict[str, Any]:
    fields: dict[str, Any] = {"board": list(board), "turn": turn, "state": state}
    if player is not None:
        fields["player"] = player
    return GameMessage(type=kind, **fields).to_payload()


def game_over_message(
    *,
    board: Sequence[str],
    turn: Marker,
    state: GameState,
    winner: Marker | None,
    winning_cells: Sequence[int],
) -> dict[str, Any]:
    return GameMessage(
        type="gameover",
        board=list(board),
        turn=turn,
        state=state,
        winner=winner,
        winning_cells=list(winning_cells),
    ).to_payload()


def error_message(error: str) -> dict[str, Any]:
    return GameMessage(type="error", error=error).to_payload()
