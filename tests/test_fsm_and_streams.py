from __future__ import annotations

import json

import fakeredis
import pytest
from statemachine.exceptions import TransitionNotAllowed

from tictactoe.core.board import Cell
from tictactoe.fsm import CoordinatorFSM, CoordinatorState, GameFSM, GameStatus
from tictactoe.sessions import SessionStore
from tictactoe.streams import EventStream


def test_game_fsm_terminal_states_need_restart() -> None:
    fsm = GameFSM()
    assert fsm.status == GameStatus.in_progress

    fsm.win()
    assert fsm.status == GameStatus.won
    assert fsm.is_terminal

    # Won is reached once; no second result without a restart.
    with pytest.raises(TransitionNotAllowed):
        fsm.tie()

    fsm.restart()
    assert fsm.status == GameStatus.in_progress
    fsm.restart()
    assert fsm.status == GameStatus.in_progress


def test_coordinator_fsm_is_single_flight() -> None:
    fsm = CoordinatorFSM()
    assert fsm.phase == CoordinatorState.idle

    fsm.request_issued()
    assert fsm.phase == CoordinatorState.awaiting_decision

    with pytest.raises(TransitionNotAllowed):
        fsm.request_issued()

    fsm.decision_settled()
    assert fsm.phase == CoordinatorState.idle


def test_session_events_are_mirrored_to_redis_stream(make_source) -> None:  # type: ignore[no-untyped-def]
    r = fakeredis.FakeRedis(decode_responses=True)
    store = SessionStore(source_factory=make_source, redis_client=r)

    session = store.create(ai_side=None)
    session.engine.submit_move(0, Cell.x)
    session.engine.submit_move(3, Cell.o)
    session.engine.submit_move(1, Cell.x)
    session.engine.submit_move(4, Cell.o)
    session.engine.submit_move(2, Cell.x)

    entries = r.xrange(EventStream(game_id=session.game_id).key)
    types = [fields["type"] for _, fields in entries]
    assert types == [
        "GAME_STARTED",
        "MOVE_MADE",
        "MOVE_MADE",
        "MOVE_MADE",
        "MOVE_MADE",
        "MOVE_MADE",
        "WINNING_LINE_FOUND",
        "GAME_WON",
    ]

    _, won = entries[-1]
    assert won["winner"] == "X"
    assert json.loads(won["line"]) == [0, 1, 2]
    assert won["session_id"] == session.engine.session_id


def test_dropping_a_session_stops_the_stream(make_source) -> None:  # type: ignore[no-untyped-def]
    r = fakeredis.FakeRedis(decode_responses=True)
    store = SessionStore(source_factory=make_source, redis_client=r)

    session = store.create(ai_side=None)
    key = EventStream(game_id=session.game_id).key
    assert store.drop(session.game_id) is True

    session.engine.submit_move(4, Cell.x)
    assert [f["type"] for _, f in r.xrange(key)] == ["GAME_STARTED"]
    assert store.get(session.game_id) is None
