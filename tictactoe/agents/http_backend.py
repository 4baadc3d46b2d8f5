from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from tictactoe.agents.base import DecisionParseFailure, DecisionTimeout, DecisionTransportFailure, MoveProposal
from tictactoe.agents.llm_config import OpenAICompatibleSettings, settings_from_env
from tictactoe.agents.move_picker import (
    MOVE_SCHEMA,
    build_move_prompt,
    build_system_prompt,
    extract_chat_content,
    parse_move_reply,
)
from tictactoe.turn_processing.board_context import BoardView, TacticalHints


@dataclass(slots=True)
class HttpDecisionSource:
    """Decision source talking to an OpenAI-compatible `/chat/completions` endpoint.

    The request timeout lives here (`settings.timeout_s`); a timeout surfaces as
    DecisionTimeout. Awaiting `request_move` is cancellable: cancelling the task
    aborts the in-flight HTTP call.

    Pass `client` to reuse a connection pool (or a MockTransport in tests);
    otherwise a short-lived client is opened per request.
    """

    settings: OpenAICompatibleSettings = field(default_factory=settings_from_env)
    name: str = "openai-http"
    client: httpx.AsyncClient | None = None
    structured_output: bool = False
    max_tokens: int = 20

    def build_payload(self, *, view: BoardView, hints: TacticalHints | None) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": build_system_prompt()},
                {"role": "user", "content": build_move_prompt(view=view, hints=hints)},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.settings.temperature,
        }
        if self.structured_output:
            payload["response_format"] = MOVE_SCHEMA.as_response_format()
        return payload

    async def request_move(self, *, view: BoardView, hints: TacticalHints | None) -> MoveProposal:
        try:
            headers = {"Authorization": f"Bearer {self.settings.effective_api_key()}"}
        except RuntimeError as e:
            raise DecisionTransportFailure(str(e)) from e

        payload = self.build_payload(view=view, hints=hints)

        try:
            if self.client is not None:
                resp = await self._post(self.client, payload, headers)
            else:
                async with httpx.AsyncClient(timeout=self.settings.timeout_s) as client:
                    resp = await self._post(client, payload, headers)
        except httpx.TimeoutException as e:
            raise DecisionTimeout(f"No answer within {self.settings.timeout_s}s") from e
        except httpx.HTTPStatusError as e:
            raise DecisionTransportFailure(
                f"HTTP {e.response.status_code} from {self.settings.chat_completions_url}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise DecisionTransportFailure(f"{type(e).__name__}: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise DecisionParseFailure(f"Response body is not JSON: {e}") from e

        content = extract_chat_content(data)
        return MoveProposal(
            cell=parse_move_reply(content),
            content=content,
            metadata={"model": self.settings.model, "backend": self.name},
        )

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        resp = await client.post(
            self.settings.chat_completions_url,
            json=payload,
            headers=headers,
            timeout=self.settings.timeout_s,
        )
        resp.raise_for_status()
        return resp
