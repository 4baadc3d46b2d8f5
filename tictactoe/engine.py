from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from uuid import uuid4

from tictactoe.core.board import Board, BoardState, Cell, require_player
from tictactoe.core.events import EventBus, EventType, GameEvent
from tictactoe.core.rules import Line, check_draw, check_win
from tictactoe.fsm import GameFSM, GameStatus
from tictactoe.turn_processing.board_context import render_board
from tictactoe.turn_processing.validators import DEFAULT_MOVE_PIPELINE, IllegalMove, MoveContext, MovePipeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionStatus:
    phase: GameStatus
    winner: Cell | None = None
    winning_line: Line | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase != GameStatus.in_progress


@dataclass(frozen=True, slots=True)
class MoveRecord:
    index: int
    player: Cell


class GameEngine:
    """Authoritative state machine for one Tic-Tac-Toe session.

    Every move, human or AI, goes through `submit_move`, which enforces turn order.
    State is committed before events are published, so subscribers always observe
    the post-move turn and status.

    Events (in order): GAME_STARTED; MOVE_MADE, then either WINNING_LINE_FOUND +
    GAME_WON or GAME_DRAW; GAME_ABANDONED.
    """

    def __init__(self, *, events: EventBus | None = None, pipeline: MovePipeline = DEFAULT_MOVE_PIPELINE) -> None:
        self.events = events or EventBus()
        self._pipeline = pipeline
        # Reentrant: subscribers may query (or even move) while we publish.
        self._lock = threading.RLock()
        self._state = BoardState()
        self._fsm = GameFSM()
        self._winner: Cell | None = None
        self._winning_line: Line | None = None
        self._history: list[MoveRecord] = []
        self.session_id = str(uuid4())

    # ---- lifecycle ----

    def new_game(self) -> str:
        """Reset to an empty board with X to move. Always succeeds."""

        with self._lock:
            self._state = BoardState()
            self._fsm.restart()
            self._winner = None
            self._winning_line = None
            self._history = []
            self.session_id = str(uuid4())
            logger.info("New game %s started; %s to move", self.session_id, self._state.turn.value)
            self._publish("GAME_STARTED", {"turn": self._state.turn.value})
            return self.session_id

    def abandon(self) -> bool:
        """End the current game without a result. Returns False if it was already over."""

        with self._lock:
            if self._fsm.is_terminal:
                return False
            self._fsm.abandon()
            logger.info("Game %s abandoned", self.session_id)
            self._publish("GAME_ABANDONED", {})
            return True

    def submit_move(self, index: int, as_player: Cell | str) -> SessionStatus:
        with self._lock:
            player = require_player(as_player)
            ctx = MoveContext(
                index=index,
                player=player,
                board=self._state.snapshot(),
                turn=self._state.turn,
                status=self._fsm.status,
            )
            try:
                self._pipeline.validate(ctx=ctx)
            except IllegalMove as e:
                logger.warning("Rejected move %r by %s: %s", index, player.value, e)
                raise

            self._state.place(index, player)
            self._history.append(MoveRecord(index=index, player=player))

            board = self._state.snapshot()
            win = check_win(board)
            if win is not None:
                self._winner, self._winning_line = win[0], win[1]
                self._fsm.win()
            elif check_draw(board):
                self._fsm.tie()
            else:
                self._state.flip_turn()

            logger.info("Player %s placed a mark at %d", player.value, index)
            self._publish("MOVE_MADE", {"index": index, "player": player.value})

            if win is not None:
                line = list(win[1])
                logger.info("Game over: %s wins on %s", player.value, line)
                self._publish("WINNING_LINE_FOUND", {"line": line})
                self._publish("GAME_WON", {"winner": player.value, "line": line})
            elif self._fsm.status == GameStatus.draw:
                logger.info("Game over: draw")
                self._publish("GAME_DRAW", {})
            else:
                logger.debug("Now %s's turn", self._state.turn.value)

            return self.status()

    # ---- queries ----

    def current_turn(self) -> Cell:
        return self._state.turn

    def status(self) -> SessionStatus:
        return SessionStatus(phase=self._fsm.status, winner=self._winner, winning_line=self._winning_line)

    def board_snapshot(self) -> Board:
        # Tuples are immutable; callers cannot reach the engine's list.
        return self._state.snapshot()

    def move_history(self) -> list[MoveRecord]:
        return list(self._history)

    def render_board(self) -> str:
        return render_board(self._state.cells)

    # ---- internals ----

    def _publish(self, type: EventType, payload: dict[str, object]) -> None:
        self.events.publish(GameEvent.now(type=type, session_id=self.session_id, payload=payload))
