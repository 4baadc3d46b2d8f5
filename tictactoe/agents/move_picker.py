from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from tictactoe.agents.base import DecisionParseFailure
from tictactoe.prompts import load_prompt, render_prompt
from tictactoe.turn_processing.board_context import BoardView, TacticalHints


@dataclass(frozen=True, slots=True)
class JsonSchema:
    """Minimal JSON Schema wrapper for OpenAI-style structured outputs."""

    name: str
    schema: dict[str, Any]
    strict: bool = True

    def as_response_format(self) -> dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {"name": self.name, "schema": self.schema, "strict": self.strict},
        }


MOVE_SCHEMA = JsonSchema(
    name="pick_cell",
    schema={
        "type": "object",
        "additionalProperties": False,
        "properties": {"cell": {"type": "integer", "minimum": 0, "maximum": 8}},
        "required": ["cell"],
    },
    strict=True,
)

# Keys some models use instead of "cell".
_CELL_KEYS = ("cell", "position", "index", "move")

_BARE_INT = re.compile(r"^-?\d+$")


def build_system_prompt() -> str:
    return load_prompt("move_system.txt")


def build_move_prompt(*, view: BoardView, hints: TacticalHints | None) -> str:
    return render_prompt(
        "move_user.txt",
        mark=view.mark.value,
        opponent=view.opponent.value,
        board=view.to_text(),
        hints=hints.to_text() if hints is not None else "(none)",
    )


def _coerce(value: object) -> object:
    # "4" -> 4; anything else is returned untouched for the coordinator to judge.
    if isinstance(value, str) and _BARE_INT.match(value.strip()):
        return int(value.strip())
    return value


def parse_move_reply(text: str) -> object:
    """Parse the model output for a move.

    Expected a JSON object such as ``{"cell": 4}`` (``position``/``index``/``move``
    are accepted too). A bare integer reply (``"4"``) is tolerated since small
    models often ignore the format. Anything else raises DecisionParseFailure.

    The returned value is not range-checked here.
    """

    stripped = text.strip()
    if not stripped:
        raise DecisionParseFailure("Empty reply")

    if _BARE_INT.match(stripped):
        return int(stripped)

    # Tolerate code fences / chatter around a single JSON object.
    first, last = stripped.find("{"), stripped.rfind("}")
    if first < 0 or last <= first:
        raise DecisionParseFailure(f"Reply is not JSON: {stripped[:80]!r}")

    try:
        data = json.loads(stripped[first : last + 1])
    except json.JSONDecodeError as e:
        raise DecisionParseFailure(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecisionParseFailure("Expected a JSON object")

    for key in _CELL_KEYS:
        if key in data:
            return _coerce(data[key])

    raise DecisionParseFailure("Missing 'cell' field")


def extract_chat_content(data: object) -> str:
    """Pull `choices[0].message.content` out of a chat-completions response body."""

    try:
        content = data["choices"][0]["message"]["content"]  # type: ignore[index]
    except (KeyError, IndexError, TypeError) as e:
        raise DecisionParseFailure(f"Unexpected response shape: {e!r}") from e
    if not isinstance(content, str):
        raise DecisionParseFailure("Response content is not text")
    return content
