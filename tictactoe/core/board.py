from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

BOARD_SIZE = 3
CELL_COUNT = BOARD_SIZE * BOARD_SIZE


class Cell(StrEnum):
    empty = "-"
    x = "X"
    o = "O"

    def opponent(self) -> "Cell":
        if self == Cell.x:
            return Cell.o
        if self == Cell.o:
            return Cell.x
        raise ValueError("An empty cell has no opponent")


Board = tuple[Cell, ...]

# X always opens.
FIRST_PLAYER = Cell.x


def require_player(value: Cell | str) -> Cell:
    """Coerce `value` into a player mark (X or O)."""

    cell = Cell(value)
    if cell == Cell.empty:
        raise ValueError("Expected a player mark (X or O), got empty")
    return cell


@dataclass(slots=True)
class BoardState:
    """The 9-cell grid plus whose turn it is.

    Cells are row-major: index = row * 3 + col.
    """

    cells: list[Cell] = field(default_factory=lambda: [Cell.empty] * CELL_COUNT)
    turn: Cell = FIRST_PLAYER

    def snapshot(self) -> Board:
        return tuple(self.cells)

    def place(self, index: int, mark: Cell) -> None:
        self.cells[index] = mark

    def flip_turn(self) -> None:
        self.turn = self.turn.opponent()


def empty_cells(board: Board | list[Cell]) -> list[int]:
    return [i for i, c in enumerate(board) if c == Cell.empty]


def board_from_string(text: str) -> Board:
    """Build a board from a 9-character string such as ``"XX-OO----"``.

    Whitespace and ``|`` separators are ignored, which makes test fixtures readable.
    """

    chars = [ch for ch in text if not ch.isspace() and ch != "|"]
    if len(chars) != CELL_COUNT:
        raise ValueError(f"Expected {CELL_COUNT} cells, got {len(chars)}")
    return tuple(Cell(ch.upper()) if ch.upper() in ("X", "O") else Cell.empty for ch in chars)
