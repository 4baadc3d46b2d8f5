from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine


class GameStatus(StrEnum):
    in_progress = "in_progress"
    won = "won"
    draw = "draw"
    abandoned = "abandoned"


class CoordinatorState(StrEnum):
    idle = "idle"
    awaiting_decision = "awaiting_decision"


class GameFSM(StateMachine):
    """Lifecycle of one game session.

    - in_progress -> won | draw | abandoned, each reached at most once per session
    - `restart` is allowed from anywhere and always lands in in_progress.
    The engine owns the board; the FSM only guards which transitions exist.
    """

    in_progress = State(GameStatus.in_progress.value, value=GameStatus.in_progress.value, initial=True)
    won = State(GameStatus.won.value, value=GameStatus.won.value)
    draw = State(GameStatus.draw.value, value=GameStatus.draw.value)
    abandoned = State(GameStatus.abandoned.value, value=GameStatus.abandoned.value)

    win = in_progress.to(won)
    tie = in_progress.to(draw)
    abandon = in_progress.to(abandoned)
    restart = in_progress.to.itself() | won.to(in_progress) | draw.to(in_progress) | abandoned.to(in_progress)

    @property
    def status(self) -> GameStatus:
        return GameStatus(str(self.current_state.value))

    @property
    def is_terminal(self) -> bool:
        return self.current_state != self.in_progress


class CoordinatorFSM(StateMachine):
    """Single-flight guard for the move coordinator: idle <-> awaiting_decision."""

    idle = State(CoordinatorState.idle.value, value=CoordinatorState.idle.value, initial=True)
    awaiting_decision = State(
        CoordinatorState.awaiting_decision.value,
        value=CoordinatorState.awaiting_decision.value,
    )

    request_issued = idle.to(awaiting_decision)
    decision_settled = awaiting_decision.to(idle)

    @property
    def phase(self) -> CoordinatorState:
        return CoordinatorState(str(self.current_state.value))
