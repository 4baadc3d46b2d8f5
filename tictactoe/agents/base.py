from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from tictactoe.turn_processing.board_context import BoardView, TacticalHints


@dataclass(frozen=True, slots=True)
class MoveProposal:
    """What a decision source answered.

    `cell` is whatever the source extracted from its reply; it is validated by the
    coordinator (it may be a non-int, out of range, or point at an occupied cell).
    """

    cell: object
    content: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


class DecisionError(RuntimeError):
    """Base class for a decision source that could not produce a usable move."""


class DecisionTransportFailure(DecisionError):
    pass


class DecisionTimeout(DecisionTransportFailure):
    pass


class DecisionParseFailure(DecisionError):
    pass


class DecisionInvalidMove(DecisionError):
    pass


class DecisionSource(Protocol):
    name: str

    async def request_move(
        self, *, view: "BoardView", hints: "TacticalHints | None"
    ) -> MoveProposal:  # pragma: no cover
        ...
