from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from tictactoe.api.deps import get_store
from tictactoe.api.models import GameCreateRequest, GameListResponse, GameState, MoveSubmitRequest
from tictactoe.core.board import Cell
from tictactoe.sessions import GameSession, SessionStore
from tictactoe.turn_processing.validators import IllegalMove
from tictactoe.websocket_hub import hub

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_session(s: SessionStore, game_id: str) -> GameSession:
    session = s.get(game_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    return session


async def _maybe_wait_for_ai(session: GameSession, wait_for_ai: bool) -> None:
    if wait_for_ai and session.coordinator is not None:
        await session.coordinator.wait_idle()


@router.websocket("/ws/game/{game_id}")
async def game_updates_ws(websocket: WebSocket, game_id: str) -> None:
    await hub.connect(game_id, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(game_id, websocket)
    except Exception:
        await hub.disconnect(game_id, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/game", response_model=GameState, status_code=status.HTTP_201_CREATED)
async def create_game_route(
    payload: GameCreateRequest,
    wait_for_ai: bool = False,
    s: SessionStore = Depends(get_store),
) -> GameState:
    ai_side = Cell(payload.ai_side) if payload.ai_side else None
    game_id = str(uuid4())
    # The hub subscribes before the first event so sockets get GAME_STARTED too.
    session = s.create(
        ai_side=ai_side,
        thinking_delay_s=payload.thinking_delay_s,
        subscribers=[hub.subscriber_for(game_id)],
        game_id=game_id,
    )

    await _maybe_wait_for_ai(session, wait_for_ai)
    return GameState.from_session(session)


@router.get("/game", response_model=GameListResponse)
async def list_games_route(s: SessionStore = Depends(get_store)) -> GameListResponse:
    return GameListResponse(games=[GameState.from_session(x) for x in s.list_games()])


@router.get("/game/{game_id}", response_model=GameState)
async def get_game_route(game_id: str, s: SessionStore = Depends(get_store)) -> GameState:
    return GameState.from_session(_require_session(s, game_id))


@router.post("/game/{game_id}/move", response_model=GameState)
async def move_route(
    game_id: str,
    payload: MoveSubmitRequest,
    wait_for_ai: bool = False,
    s: SessionStore = Depends(get_store),
) -> GameState:
    session = _require_session(s, game_id)

    if session.ai_side is not None and Cell(payload.player) == session.ai_side:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Player {payload.player} is played by the AI",
        )

    try:
        session.engine.submit_move(payload.index, Cell(payload.player))
    except IllegalMove as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"reason": e.reason.value, "message": str(e)},
        ) from e

    await _maybe_wait_for_ai(session, wait_for_ai)
    return GameState.from_session(session)


@router.post("/game/{game_id}/restart", response_model=GameState)
async def restart_route(game_id: str, wait_for_ai: bool = False, s: SessionStore = Depends(get_store)) -> GameState:
    session = _require_session(s, game_id)
    session.engine.new_game()

    await _maybe_wait_for_ai(session, wait_for_ai)
    return GameState.from_session(session)


@router.post("/game/{game_id}/quit", response_model=GameState)
async def quit_route(game_id: str, s: SessionStore = Depends(get_store)) -> GameState:
    session = _require_session(s, game_id)
    session.engine.abandon()
    return GameState.from_session(session)


@router.delete("/game/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game_route(game_id: str, s: SessionStore = Depends(get_store)) -> None:
    if not s.drop(game_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    hub.forget(game_id)
    logger.info("Deleted game %s", game_id)
