from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

logger = logging.getLogger(__name__)

EventType = Literal[
    "GAME_STARTED",
    "GAME_ABANDONED",
    "MOVE_MADE",
    "WINNING_LINE_FOUND",
    "GAME_WON",
    "GAME_DRAW",
    "THINKING_STARTED",
    "THINKING_FINISHED",
    "DECISION_FAILED",
    "DECISION_DISCARDED",
]


@dataclass(frozen=True, slots=True)
class GameEvent:
    type: EventType
    session_id: str
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, session_id: str, payload: dict[str, Any] | None = None) -> "GameEvent":
        return GameEvent(type=type, session_id=session_id, payload=dict(payload or {}), ts=datetime.now(timezone.utc))

    def as_payload(self) -> dict[str, Any]:
        """JSON-serializable view, used by the WebSocket hub."""

        return {"type": self.type, "session_id": self.session_id, "ts": self.ts.isoformat(), **self.payload}


Subscriber = Callable[[GameEvent], None]


class EventBus:
    """Synchronous, ordered fan-out of game events.

    One bus per GameEngine: subscriptions live and die with the engine, so
    sessions never see each other's events.

    Delivery order equals publish order for every subscriber. An event published
    by a subscriber while another event is being delivered is queued and only
    delivered once the current event has reached all subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._pending: deque[GameEvent] = deque()
        self._delivering = False

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        self._subscribers.append(fn)

        def _unsubscribe() -> None:
            self.unsubscribe(fn)

        return _unsubscribe

    def unsubscribe(self, fn: Subscriber) -> None:
        try:
            self._subscribers.remove(fn)
        except ValueError:
            pass

    def publish(self, event: GameEvent) -> None:
        self._pending.append(event)
        if self._delivering:
            return

        self._delivering = True
        try:
            while self._pending:
                self._deliver(self._pending.popleft())
        finally:
            self._delivering = False

    def _deliver(self, event: GameEvent) -> None:
        # Copy: subscribers may (un)subscribe while we iterate.
        for fn in list(self._subscribers):
            try:
                fn(event)
            except Exception:
                logger.exception("Event subscriber failed on %s", event.type)
