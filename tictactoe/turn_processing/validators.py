from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import cast

from tictactoe.agents.base import DecisionInvalidMove, DecisionParseFailure
from tictactoe.core.board import CELL_COUNT, Cell
from tictactoe.fsm import GameStatus


class IllegalMoveReason(StrEnum):
    game_over = "game_over"
    out_of_range = "out_of_range"
    occupied = "occupied"
    wrong_turn = "wrong_turn"


class IllegalMove(ValueError):
    """A move the engine refused. Game state is unchanged."""

    def __init__(self, reason: IllegalMoveReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


@dataclass(frozen=True, slots=True)
class MoveContext:
    """Everything a move validator may look at.

    Keep this tight and loggable; it is a snapshot, not the engine itself.
    """

    index: object
    player: Cell
    board: tuple[Cell, ...]
    turn: Cell
    status: GameStatus


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class MoveValidator(ABC):
    """A small, composable validation unit for an incoming move."""

    @abstractmethod
    def validate(self, *, ctx: MoveContext) -> None:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class GameInProgressValidator(MoveValidator):
    def validate(self, *, ctx: MoveContext) -> None:
        if ctx.status != GameStatus.in_progress:
            raise IllegalMove(IllegalMoveReason.game_over, f"Game is over ({ctx.status.value})")


@dataclass(frozen=True, slots=True)
class RangeValidator(MoveValidator):
    def validate(self, *, ctx: MoveContext) -> None:
        if not _is_int(ctx.index) or not (0 <= ctx.index < CELL_COUNT):  # type: ignore[operator]
            raise IllegalMove(IllegalMoveReason.out_of_range, f"Cell {ctx.index!r} is out of range 0-{CELL_COUNT - 1}")


@dataclass(frozen=True, slots=True)
class EmptyCellValidator(MoveValidator):
    def validate(self, *, ctx: MoveContext) -> None:
        # RangeValidator runs first, so the index is an int here.
        index = cast(int, ctx.index)
        if ctx.board[index] != Cell.empty:
            raise IllegalMove(IllegalMoveReason.occupied, f"Cell {index} is already taken by {ctx.board[index].value}")


@dataclass(frozen=True, slots=True)
class TurnValidator(MoveValidator):
    """Only the side whose turn it is may move."""

    def validate(self, *, ctx: MoveContext) -> None:
        if ctx.player != ctx.turn:
            raise IllegalMove(
                IllegalMoveReason.wrong_turn,
                f"Not {ctx.player.value}'s turn (current player is {ctx.turn.value})",
            )


@dataclass(frozen=True, slots=True)
class MovePipeline:
    validators: tuple[MoveValidator, ...]

    def validate(self, *, ctx: MoveContext) -> None:
        for v in self.validators:
            v.validate(ctx=ctx)


# Order matters: the first failing check names the reason reported to the caller.
DEFAULT_MOVE_PIPELINE = MovePipeline(
    validators=(
        GameInProgressValidator(),
        RangeValidator(),
        EmptyCellValidator(),
        TurnValidator(),
    )
)


def validate_decision(value: object, *, board: Sequence[Cell]) -> int:
    """Check a decision source's answer against the board as it is *now*.

    Raises DecisionParseFailure for non-integers and DecisionInvalidMove for
    out-of-range or occupied cells.
    """

    if not _is_int(value):
        raise DecisionParseFailure(f"Expected an integer cell index, got {value!r}")
    index = cast(int, value)
    if not (0 <= index < CELL_COUNT):
        raise DecisionInvalidMove(f"Cell {index} is out of range 0-{CELL_COUNT - 1}")
    if board[index] != Cell.empty:
        raise DecisionInvalidMove(f"Cell {index} is already occupied")
    return index
