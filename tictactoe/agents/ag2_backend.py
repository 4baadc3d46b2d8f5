from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from autogen import ConversableAgent

from tictactoe.agents.base import DecisionTransportFailure, MoveProposal
from tictactoe.agents.llm_config import OpenAICompatibleSettings, llm_config_from_settings, settings_from_env
from tictactoe.agents.move_picker import build_move_prompt, build_system_prompt, parse_move_reply
from tictactoe.turn_processing.board_context import BoardView, TacticalHints


def _extract_last_content(messages: object) -> str:
    """Extract the last message content from AG2 chat history."""

    if not isinstance(messages, list):
        return ""

    for msg in reversed(messages):
        if isinstance(msg, dict):
            content = msg.get("content")
            if isinstance(content, str) and content.strip():
                return content.strip()
    return ""


@dataclass(slots=True)
class Ag2DecisionSource:
    """Decision source backed by an AG2 (`autogen`) ConversableAgent.

    AG2's `run` is blocking, so it executes in a worker thread. Cancelling the
    awaiting task abandons the thread's result; the coordinator then treats any
    late answer as stale.

    Environment variables supported (see `llm_config.settings_from_env`):
    - OPENAI_MODEL
    - OPENAI_API_KEY (optional if OPENAI_BASE_URL is set)
    - OPENAI_BASE_URL (for OpenAI-compatible servers like Ollama, e.g. http://127.0.0.1:11434/v1)
    """

    settings: OpenAICompatibleSettings = field(default_factory=settings_from_env)
    name: str = "ag2"

    def _ask_blocking(self, prompt: str) -> str:
        agent = ConversableAgent(
            name=f"tictactoe-{self.name}",
            system_message=build_system_prompt(),
            llm_config=llm_config_from_settings(self.settings),
            human_input_mode="NEVER",
        )

        result = agent.run(message=prompt, max_turns=1)
        result.process()

        text = _extract_last_content(list(result.messages))
        if not text:
            # Fallback: attempt to use summary if provided.
            summary = result.summary
            if isinstance(summary, str):
                text = summary.strip()
        return text

    async def request_move(self, *, view: BoardView, hints: TacticalHints | None) -> MoveProposal:
        prompt = build_move_prompt(view=view, hints=hints)
        try:
            text = await asyncio.to_thread(self._ask_blocking, prompt)
        except Exception as e:
            raise DecisionTransportFailure(f"AG2 call failed: {type(e).__name__}: {e}") from e

        return MoveProposal(
            cell=parse_move_reply(text),
            content=text,
            metadata={"model": self.settings.model, "backend": self.name},
        )
