"""Tic-tac-toe board rules: win and draw detection, turn alternation. No state, no I/O."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum

BOARD_SIZE = 9
EMPTY = ""


class Marker(StrEnum):
    X = "X"
    O = "O"  # noqa: E741


FIRST_MARKER = Marker.X

# Rows, then columns, then diagonals. The first complete line in this order is reported.
WIN_LINES: tuple[tuple[int, int, int], ...] = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)


def new_board() -> list[str]:
    return [EMPTY] * BOARD_SIZE


def _first_complete_line(board: Sequence[str]) -> tuple[int, int, int] | None:
    for a, b, c in WIN_LINES:
        if board[a] != EMPTY and board[a] == board[b] == board[c]:
            return (a, b, c)
    return None


def check_winner(board: Sequence[str]) -> Marker | None:
    """Marker occupying the first complete line, or None."""
    line = _first_complete_line(board)
    if line is None:
        return None
    return Marker(board[line[0]])


def winning_cells(board: Sequence[str]) -> list[int]:
    """Indices of the first complete line, or an empty list."""
    line = _first_complete_line(board)
    return list(line) if line is not None else []


def is_full(board: Sequence[str]) -> bool:
    return all(cell != EMPTY for cell in board)


def next_turn(marker: Marker) -> Marker:
    return Marker.O if marker == Marker.X else Marker.X
