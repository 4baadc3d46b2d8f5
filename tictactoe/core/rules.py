from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tictactoe.core.board import CELL_COUNT, Cell

Line = tuple[int, int, int]

# Scan order is part of the contract: rows, then columns, then diagonals.
LINES: tuple[Line, ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


@dataclass(frozen=True, slots=True)
class LineThreat:
    """A line holding two marks of one player and a single empty cell."""

    line: Line
    cell: int


def check_win(board: Sequence[Cell]) -> tuple[Cell, Line] | None:
    """Return `(winner, line)` for the first completed line, else None."""

    for a, b, c in LINES:
        if board[a] != Cell.empty and board[a] == board[b] == board[c]:
            return board[a], (a, b, c)
    return None


def check_draw(board: Sequence[Cell]) -> bool:
    if any(c == Cell.empty for c in board):
        return False
    return check_win(board) is None


def is_legal(board: Sequence[Cell], index: object) -> bool:
    # bool is an int subclass; True must not mean cell 1.
    if not isinstance(index, int) or isinstance(index, bool):
        return False
    return 0 <= index < CELL_COUNT and board[index] == Cell.empty


def find_threats(board: Sequence[Cell], mark: Cell) -> list[LineThreat]:
    """Lines where `mark` has two cells and the third is empty, in LINES order."""

    threats: list[LineThreat] = []
    for line in LINES:
        values = [board[i] for i in line]
        if values.count(mark) == 2 and values.count(Cell.empty) == 1:
            threats.append(LineThreat(line=line, cell=line[values.index(Cell.empty)]))
    return threats
