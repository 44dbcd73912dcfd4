from .board import BOARD_SIZE, EMPTY, FIRST_MARKER, WIN_LINES, Marker
from .messages import Command, MoveCommand, NewGameCommand, decode_command
from .session import GameState, Identity, Outcome, Player, PlayerStats

__all__ = [
    "BOARD_SIZE",
    "EMPTY",
    "FIRST_MARKER",
    "WIN_LINES",
    "Marker",
    "GameState",
    "Identity",
    "Outcome",
    "Player",
    "PlayerStats",
    "Command",
    "MoveCommand",
    "NewGameCommand",
    "decode_command",
]
