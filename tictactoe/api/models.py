from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from tictactoe.fsm import CoordinatorState, GameStatus
from tictactoe.sessions import GameSession

PlayerMark = Literal["X", "O"]


class GameCreateRequest(BaseModel):
    # Which side the AI plays; null for a human-vs-human board.
    ai_side: PlayerMark | None = "O"
    thinking_delay_s: float | None = Field(default=None, ge=0, le=30)


class MoveSubmitRequest(BaseModel):
    index: int = Field(..., description="Cell index 0-8, row-major")
    player: PlayerMark


class GameState(BaseModel):
    game_id: str
    session_id: str
    created_at: datetime

    board: list[str]
    turn: PlayerMark
    status: GameStatus
    winner: PlayerMark | None = None
    winning_line: list[int] | None = None
    move_count: int = 0

    ai_side: PlayerMark | None = None
    ai_state: CoordinatorState | None = None

    @classmethod
    def from_session(cls, session: GameSession) -> "GameState":
        engine = session.engine
        status = engine.status()
        coord = session.coordinator
        return cls(
            game_id=session.game_id,
            session_id=engine.session_id,
            created_at=session.created_at,
            board=[c.value for c in engine.board_snapshot()],
            turn=engine.current_turn().value,  # type: ignore[arg-type]
            status=status.phase,
            winner=status.winner.value if status.winner else None,  # type: ignore[arg-type]
            winning_line=list(status.winning_line) if status.winning_line else None,
            move_count=len(engine.move_history()),
            ai_side=coord.side.value if coord else None,  # type: ignore[arg-type]
            ai_state=coord.state if coord else None,
        )


class GameListResponse(BaseModel):
    games: list[GameState]
