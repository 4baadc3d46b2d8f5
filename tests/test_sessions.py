from __future__ import annotations

import pytest

from tictactoe.core.board import Cell
from tictactoe.core.events import GameEvent
from tictactoe.sessions import SessionStore


def test_subscribers_passed_to_create_see_game_started(make_source) -> None:  # type: ignore[no-untyped-def]
    store = SessionStore(source_factory=make_source, max_games=10)
    seen: list[GameEvent] = []

    session = store.create(ai_side=Cell.o, subscribers=[seen.append], game_id="g-1")

    assert session.game_id == "g-1"
    assert [e.type for e in seen] == ["GAME_STARTED"]
    assert seen[0].session_id == session.engine.session_id

    with pytest.raises(ValueError):
        store.create(ai_side=None, game_id="g-1")


def test_full_store_evicts_finished_games_first(make_source) -> None:  # type: ignore[no-untyped-def]
    store = SessionStore(source_factory=make_source, max_games=3)
    oldest = store.create(ai_side=None)
    finished = store.create(ai_side=None)
    newest = store.create(ai_side=None)
    finished.engine.abandon()

    added = store.create(ai_side=None)

    ids = [s.game_id for s in store.list_games()]
    assert ids == [oldest.game_id, newest.game_id, added.game_id]
    assert store.get(finished.game_id) is None


def test_full_store_without_finished_games_evicts_oldest(make_source) -> None:  # type: ignore[no-untyped-def]
    store = SessionStore(source_factory=make_source, max_games=2)
    a = store.create(ai_side=None)
    b = store.create(ai_side=None)
    seen: list[GameEvent] = []
    a.subscribe(seen.append)

    store.create(ai_side=None)

    assert store.get(a.game_id) is None
    assert store.get(b.game_id) is not None
    # Dropped sessions release their subscriptions.
    a.engine.submit_move(0, Cell.x)
    assert seen == []


def test_max_games_from_env(monkeypatch: pytest.MonkeyPatch, make_source) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setenv("TICTACTOE_MAX_GAMES", "5")
    assert SessionStore(source_factory=make_source).max_games == 5
