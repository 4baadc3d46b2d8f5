from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from tictactoe.core.board import BOARD_SIZE, Board, Cell, empty_cells
from tictactoe.core.rules import LineThreat, find_threats


def render_board(board: Sequence[Cell]) -> str:
    """Render the grid with empty cells shown as their index.

    Example:
        X | O | 2
        3 | X | 5
        6 | 7 | 8
    """

    rows: list[str] = []
    for r in range(BOARD_SIZE):
        cells = board[r * BOARD_SIZE : (r + 1) * BOARD_SIZE]
        rows.append(
            " | ".join(c.value if c != Cell.empty else str(r * BOARD_SIZE + i) for i, c in enumerate(cells))
        )
    return "\n".join(rows)


@dataclass(frozen=True, slots=True)
class BoardView:
    """Serialized view of the board from the point of view of the side to move."""

    board: Board
    mark: Cell

    @property
    def opponent(self) -> Cell:
        return self.mark.opponent()

    @property
    def available(self) -> list[int]:
        return empty_cells(self.board)

    def to_text(self) -> str:
        return "\n".join(
            [
                "Current board state (positions 0-8):",
                render_board(self.board),
                "",
                "Available positions: " + " ".join(str(i) for i in self.available),
            ]
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "board": [c.value for c in self.board],
            "mark": self.mark.value,
            "available": self.available,
        }


@dataclass(frozen=True, slots=True)
class TacticalHints:
    """Advisory 2-of-3 patterns. Never enforced by the coordinator itself."""

    winning: tuple[LineThreat, ...] = ()
    blocking: tuple[LineThreat, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.winning and not self.blocking

    def to_text(self) -> str:
        if self.empty:
            return "No immediate wins or threats on the board."

        lines: list[str] = []
        for t in self.winning:
            lines.append(f"- WIN available: play {t.cell} to complete line {_fmt_line(t)}")
        for t in self.blocking:
            lines.append(f"- BLOCK needed: opponent completes line {_fmt_line(t)} at {t.cell}")
        return "\n".join(lines)

    def to_payload(self) -> dict[str, Any]:
        return {
            "winning": [{"line": list(t.line), "cell": t.cell} for t in self.winning],
            "blocking": [{"line": list(t.line), "cell": t.cell} for t in self.blocking],
        }


def _fmt_line(t: LineThreat) -> str:
    return "-".join(str(i) for i in t.line)


def tactical_hints(board: Sequence[Cell], *, mark: Cell) -> TacticalHints:
    return TacticalHints(
        winning=tuple(find_threats(board, mark)),
        blocking=tuple(find_threats(board, mark.opponent())),
    )
