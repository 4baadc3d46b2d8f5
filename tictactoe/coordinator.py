from __future__ import annotations

import asyncio
import logging
import os
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from tictactoe.agents.base import (
    DecisionInvalidMove,
    DecisionParseFailure,
    DecisionSource,
    DecisionTimeout,
    DecisionTransportFailure,
    MoveProposal,
)
from tictactoe.core.board import Board, Cell, empty_cells, require_player
from tictactoe.core.events import EventType, GameEvent
from tictactoe.engine import GameEngine
from tictactoe.fsm import CoordinatorFSM, CoordinatorState, GameStatus
from tictactoe.turn_processing.board_context import BoardView, TacticalHints, tactical_hints
from tictactoe.turn_processing.validators import validate_decision

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CoordinatorConfig:
    # Which player the decision source plays.
    managed_side: Cell = Cell.o
    # Minimum wall time between request start and accepting the answer.
    thinking_delay_s: float = 1.0
    include_hints: bool = True


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def coordinator_config_from_env() -> CoordinatorConfig:
    return CoordinatorConfig(
        managed_side=require_player(os.environ.get("TICTACTOE_AI_SIDE", "O").upper()),
        thinking_delay_s=max(0.0, float(os.environ.get("TICTACTOE_THINKING_DELAY_S", "1.0"))),
        include_hints=_env_flag("TICTACTOE_TACTICAL_HINTS", True),
    )


class DecisionFailure(StrEnum):
    transport = "transport"
    timeout = "timeout"
    parse = "parse"
    invalid_move = "invalid_move"


@dataclass(frozen=True, slots=True)
class MoveRequest:
    """One outstanding question to the decision source, tied to a game session."""

    request_id: str
    session_id: str
    side: Cell
    board: Board
    view: BoardView
    hints: TacticalHints | None
    issued_at: datetime


@dataclass(frozen=True, slots=True)
class DecisionOutcome:
    cell: int
    failure: DecisionFailure | None = None
    detail: str = ""

    @property
    def fallback(self) -> bool:
        return self.failure is not None


def choose_fallback_cell(board: Sequence[Cell], rng: random.Random) -> int:
    """Uniformly random empty cell."""

    cells = empty_cells(board)
    if not cells:
        raise ValueError("No empty cell to fall back to")
    return rng.choice(cells)


class MoveCoordinator:
    """Obtains moves for the managed side from a DecisionSource.

    - At most one request is outstanding (CoordinatorFSM: idle <-> awaiting_decision).
    - Failures, timeouts, and invalid answers fall back to a random empty cell.
    - Results are re-checked against the live session before submission; a
      restart or game end during flight turns the answer into a no-op.
    """

    def __init__(
        self,
        *,
        engine: GameEngine,
        source: DecisionSource,
        config: CoordinatorConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.engine = engine
        self.source = source
        self.config = config or CoordinatorConfig()
        self.side = require_player(self.config.managed_side)
        self._rng = rng or random.Random()
        self._fsm = CoordinatorFSM()
        self._request: MoveRequest | None = None
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self.outcomes: list[DecisionOutcome] = []

    # ---- wiring ----

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.engine.events.subscribe(self._on_event)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def close(self) -> None:
        self.detach()
        self.cancel(reason="coordinator closed")

    # ---- state ----

    @property
    def state(self) -> CoordinatorState:
        return self._fsm.phase

    @property
    def is_thinking(self) -> bool:
        return self.state == CoordinatorState.awaiting_decision

    @property
    def pending(self) -> MoveRequest | None:
        return self._request

    async def wait_idle(self) -> None:
        """Wait until no request is outstanding (including requests started meanwhile)."""

        while self._task is not None:
            await asyncio.wait({self._task})

    # ---- triggers ----

    def _on_event(self, event: GameEvent) -> None:
        if event.type in ("GAME_STARTED", "GAME_ABANDONED"):
            self.cancel(reason=f"{event.type.lower()} during decision")
        if event.type in ("GAME_STARTED", "MOVE_MADE"):
            self.request_move()

    def _is_due(self) -> bool:
        return self.engine.status().phase == GameStatus.in_progress and self.engine.current_turn() == self.side

    def request_move(self) -> MoveRequest | None:
        """Issue a decision request if it is the managed side's turn.

        No-op (returns None) when not due or when a request is already in flight.
        Must be called from inside a running event loop.
        """

        if not self._is_due():
            return None
        if self.is_thinking:
            logger.debug("Decision already in flight for %s; ignoring trigger", self.side.value)
            return None

        board = self.engine.board_snapshot()
        request = MoveRequest(
            request_id=str(uuid4()),
            session_id=self.engine.session_id,
            side=self.side,
            board=board,
            view=BoardView(board=board, mark=self.side),
            hints=tactical_hints(board, mark=self.side) if self.config.include_hints else None,
            issued_at=datetime.now(tz=UTC),
        )

        loop = asyncio.get_running_loop()
        self._fsm.request_issued()
        self._request = request
        logger.info("AI (%s) is thinking; request %s", self.side.value, request.request_id)
        self._emit("THINKING_STARTED", {"request_id": request.request_id, "player": self.side.value})
        self._task = loop.create_task(self._run(request), name=f"decision-{request.request_id}")
        return request

    def cancel(self, *, reason: str = "cancelled") -> bool:
        """Drop the outstanding request, cancelling its task. Returns True if one was pending."""

        request, task = self._request, self._task
        if request is None:
            return False
        if task is not None and not task.done():
            task.cancel()
        logger.info("Discarding decision request %s: %s", request.request_id, reason)
        self._emit("DECISION_DISCARDED", {"request_id": request.request_id, "reason": reason}, session_id=request.session_id)
        self._settle(request)
        return True

    # ---- the request lifecycle ----

    async def _run(self, request: MoveRequest) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            proposal, failure = await self._ask(request)

            remaining = self.config.thinking_delay_s - (loop.time() - started)
            if remaining > 0:
                await asyncio.sleep(remaining)

            try:
                self._commit(request, proposal, failure)
            except Exception:
                # Nobody awaits this task; a move rejected by the engine only gets logged.
                logger.exception("Could not submit decision for request %s", request.request_id)
        finally:
            if self._request is request:
                self._settle(request)

    async def _ask(self, request: MoveRequest) -> tuple[MoveProposal | None, tuple[DecisionFailure, str] | None]:
        try:
            proposal = await self.source.request_move(view=request.view, hints=request.hints)
        except DecisionTimeout as e:
            return None, (DecisionFailure.timeout, str(e) or "timed out")
        except DecisionTransportFailure as e:
            return None, (DecisionFailure.transport, str(e))
        except DecisionParseFailure as e:
            return None, (DecisionFailure.parse, str(e))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Decision source %s raised unexpectedly", getattr(self.source, "name", "?"))
            return None, (DecisionFailure.transport, f"{type(e).__name__}: {e}")
        return proposal, None

    def _commit(
        self,
        request: MoveRequest,
        proposal: MoveProposal | None,
        failure: tuple[DecisionFailure, str] | None,
    ) -> None:
        if self._request is not request or not self._is_current(request):
            logger.info("Stale decision for request %s discarded", request.request_id)
            self._emit(
                "DECISION_DISCARDED",
                {"request_id": request.request_id, "reason": "stale"},
                session_id=request.session_id,
            )
            return

        board = self.engine.board_snapshot()
        outcome = self._resolve(proposal, failure, board)
        self.outcomes.append(outcome)

        if outcome.fallback:
            logger.warning(
                "Decision failed (%s: %s); making fallback random move at %d",
                outcome.failure.value if outcome.failure else "?",
                outcome.detail,
                outcome.cell,
            )
            self._emit(
                "DECISION_FAILED",
                {
                    "request_id": request.request_id,
                    "failure": outcome.failure.value if outcome.failure else "",
                    "detail": outcome.detail,
                    "fallback_cell": outcome.cell,
                },
            )
        else:
            logger.info("AI (%s) chose position %d", self.side.value, outcome.cell)

        self.engine.submit_move(outcome.cell, self.side)

    def _is_current(self, request: MoveRequest) -> bool:
        return self.engine.session_id == request.session_id and self._is_due()

    def _resolve(
        self,
        proposal: MoveProposal | None,
        failure: tuple[DecisionFailure, str] | None,
        board: Board,
    ) -> DecisionOutcome:
        if failure is None and proposal is not None:
            try:
                return DecisionOutcome(cell=validate_decision(proposal.cell, board=board))
            except DecisionParseFailure as e:
                failure = (DecisionFailure.parse, str(e))
            except DecisionInvalidMove as e:
                failure = (DecisionFailure.invalid_move, str(e))

        kind, detail = failure or (DecisionFailure.parse, "empty reply")
        return DecisionOutcome(cell=choose_fallback_cell(board, self._rng), failure=kind, detail=detail)

    def _settle(self, request: MoveRequest) -> None:
        self._request = None
        self._task = None
        if self.is_thinking:
            self._fsm.decision_settled()
        self._emit(
            "THINKING_FINISHED",
            {"request_id": request.request_id, "player": self.side.value},
            session_id=request.session_id,
        )

    def _emit(self, type: EventType, payload: dict[str, object], *, session_id: str | None = None) -> None:
        self.engine.events.publish(
            GameEvent.now(type=type, session_id=session_id or self.engine.session_id, payload=payload)
        )
