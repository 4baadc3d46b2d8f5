from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable

from fastapi import WebSocket

from tictactoe.core.events import GameEvent

logger = logging.getLogger(__name__)


class GameWebSocketHub:
    """In-process WebSocket fan-out of game events keyed by game_id.

    Contract:
      - assign connection to a game_id via `connect(game_id, websocket)`.
      - `subscriber_for(game_id)` returns an EventBus subscriber; each event is
        pushed as JSON (`GameEvent.as_payload`) to every socket of that game.

    Events are sent by one pump task per game so sockets see them in publish order.
    """

    def __init__(self) -> None:
        self._by_game: dict[str, set[WebSocket]] = defaultdict(set)
        self._queues: dict[str, asyncio.Queue[dict[str, object]]] = {}
        self._pumps: dict[str, asyncio.Task[None]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, game_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_game[game_id].add(websocket)

    async def disconnect(self, game_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            conns = self._by_game.get(game_id)
            if not conns:
                return
            conns.discard(websocket)
            if not conns:
                self._by_game.pop(game_id, None)

    def connection_count(self, game_id: str) -> int:
        return len(self._by_game.get(game_id, ()))

    async def broadcast(self, game_id: str, payload: dict[str, object]) -> None:
        async with self._lock:
            conns = list(self._by_game.get(game_id, set()))

        if not conns:
            return

        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append(ws)

        if dead:
            async with self._lock:
                conns_left = self._by_game.get(game_id, set())
                conns_left.difference_update(dead)
                if not conns_left:
                    self._by_game.pop(game_id, None)

    def subscriber_for(self, game_id: str) -> Callable[[GameEvent], None]:
        def _on_event(event: GameEvent) -> None:
            if not self.connection_count(game_id):
                # Nobody is watching this game; keep no per-game state for it.
                return
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # Engine driven outside the server loop (scripts/tests): nobody to push to.
                return
            queue = self._queues.get(game_id)
            if queue is None:
                queue = self._queues[game_id] = asyncio.Queue()
            queue.put_nowait(event.as_payload())
            pump = self._pumps.get(game_id)
            if pump is None or pump.done():
                self._pumps[game_id] = loop.create_task(self._pump(game_id, queue))

        return _on_event

    async def _pump(self, game_id: str, queue: asyncio.Queue[dict[str, object]]) -> None:
        while not queue.empty():
            payload = queue.get_nowait()
            await self.broadcast(game_id, payload)
        # Drained: drop the per-game state; the next event starts a fresh pump.
        if self._queues.get(game_id) is queue:
            self._queues.pop(game_id, None)
            self._pumps.pop(game_id, None)

    def pending_games(self) -> set[str]:
        """Games with queued events or a running pump."""

        return set(self._queues) | set(self._pumps)

    def forget(self, game_id: str) -> None:
        pump = self._pumps.pop(game_id, None)
        if pump is not None and not pump.done():
            pump.cancel()
        self._queues.pop(game_id, None)


hub = GameWebSocketHub()
