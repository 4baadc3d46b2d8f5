from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Mapping, cast

import redis

from tictactoe.core.events import GameEvent


@dataclass(frozen=True, slots=True)
class EventStream:
    game_id: str

    @property
    def key(self) -> str:
        return f"tictactoe:events:{self.game_id}"


def event_fields(event: GameEvent) -> dict[str, str]:
    """Flatten an event into Redis Stream fields (strings only)."""

    fields: dict[str, str] = {
        "type": event.type,
        "session_id": event.session_id,
        "ts": event.ts.isoformat(),
    }
    for k, v in event.payload.items():
        fields[str(k)] = v if isinstance(v, str) else json.dumps(v)
    return fields


def publish_to_stream(*, r: redis.Redis, stream: EventStream, fields: Mapping[str, str]) -> str:
    """Append an entry to a game's event stream."""

    # redis-py stubs expect field/value unions; in our app we only use string fields/values.
    stream_id = r.xadd(stream.key, {str(k): str(v) for k, v in fields.items()})
    return cast(str, stream_id)


@dataclass(frozen=True, slots=True)
class RedisEventSink:
    """EventBus subscriber mirroring every game event into a Redis Stream.

    Only the event log goes to Redis; sessions themselves stay in memory.
    """

    r: redis.Redis
    stream: EventStream

    def __call__(self, event: GameEvent) -> None:
        publish_to_stream(r=self.r, stream=self.stream, fields=event_fields(event))
