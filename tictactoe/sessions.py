from __future__ import annotations

import logging
import os
import random
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import uuid4

import redis

from tictactoe.agents.base import DecisionSource
from tictactoe.agents.factory import create_default_decision_source
from tictactoe.coordinator import CoordinatorConfig, MoveCoordinator, coordinator_config_from_env
from tictactoe.core.board import Cell
from tictactoe.core.events import EventBus, Subscriber
from tictactoe.engine import GameEngine
from tictactoe.streams import EventStream, RedisEventSink

logger = logging.getLogger(__name__)

DEFAULT_MAX_GAMES = 1000


def max_games_from_env() -> int:
    return max(1, int(os.environ.get("TICTACTOE_MAX_GAMES", DEFAULT_MAX_GAMES)))


def _now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class GameSession:
    """One hosted game: engine, optional AI coordinator, and the subscriptions we own."""

    game_id: str
    engine: GameEngine
    coordinator: MoveCoordinator | None
    created_at: datetime
    _unsubscribers: list[Callable[[], None]] = field(default_factory=list)

    @property
    def ai_side(self) -> Cell | None:
        return self.coordinator.side if self.coordinator is not None else None

    def subscribe(self, fn: Subscriber) -> None:
        self._unsubscribers.append(self.engine.events.subscribe(fn))

    def close(self) -> None:
        if self.coordinator is not None:
            self.coordinator.close()
        for unsub in self._unsubscribers:
            unsub()
        self._unsubscribers.clear()


class SessionStore:
    """In-memory registry of game sessions. Nothing here is persisted."""

    def __init__(
        self,
        *,
        source_factory: Callable[[], DecisionSource] = create_default_decision_source,
        defaults: CoordinatorConfig | None = None,
        redis_client: redis.Redis | None = None,
        rng_seed: int | None = None,
        max_games: int | None = None,
    ) -> None:
        self._sessions: dict[str, GameSession] = {}
        self._source_factory = source_factory
        self.defaults = defaults
        self.redis_client = redis_client
        self._rng_seed = rng_seed
        self.max_games = max_games if max_games is not None else max_games_from_env()

    def create(
        self,
        *,
        ai_side: Cell | None,
        thinking_delay_s: float | None = None,
        subscribers: list[Subscriber] | None = None,
        game_id: str | None = None,
    ) -> GameSession:
        """Create and start a session.

        Subscribers are attached before the first GAME_STARTED so they see the whole log.
        If the AI plays X it starts thinking immediately (requires a running loop).
        When the store is full the oldest finished game (else the oldest game) is dropped.
        """

        game_id = game_id or str(uuid4())
        if game_id in self._sessions:
            raise ValueError(f"Game {game_id} already exists")
        self._evict_for_new_game()
        engine = GameEngine(events=EventBus())

        coordinator: MoveCoordinator | None = None
        if ai_side is not None:
            config = replace(self.defaults or coordinator_config_from_env(), managed_side=ai_side)
            if thinking_delay_s is not None:
                config = replace(config, thinking_delay_s=thinking_delay_s)
            rng = random.Random(self._rng_seed) if self._rng_seed is not None else None
            coordinator = MoveCoordinator(engine=engine, source=self._source_factory(), config=config, rng=rng)

        session = GameSession(game_id=game_id, engine=engine, coordinator=coordinator, created_at=_now())

        if self.redis_client is not None:
            session.subscribe(RedisEventSink(r=self.redis_client, stream=EventStream(game_id=game_id)))
        for fn in subscribers or []:
            session.subscribe(fn)
        if coordinator is not None:
            coordinator.attach()

        self._sessions[game_id] = session
        engine.new_game()
        logger.info("Created game %s (ai_side=%s)", game_id, ai_side.value if ai_side else None)
        return session

    def get(self, game_id: str) -> GameSession | None:
        return self._sessions.get(game_id)

    def list_games(self) -> list[GameSession]:
        return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def drop(self, game_id: str) -> bool:
        session = self._sessions.pop(game_id, None)
        if session is None:
            return False
        session.close()
        return True

    def _evict_for_new_game(self) -> None:
        while self._sessions and len(self._sessions) >= self.max_games:
            by_age = self.list_games()
            victim = next((s for s in by_age if s.engine.status().is_terminal), by_age[0])
            logger.info("Evicting game %s (store holds %d games)", victim.game_id, len(self._sessions))
            self.drop(victim.game_id)

    def clear(self) -> None:
        for game_id in list(self._sessions):
            self.drop(game_id)


store = SessionStore()
