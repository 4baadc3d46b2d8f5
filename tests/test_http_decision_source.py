from __future__ import annotations

import json

import httpx
import pytest

from tictactoe.agents.base import DecisionParseFailure, DecisionTimeout, DecisionTransportFailure
from tictactoe.agents.factory import create_default_decision_source
from tictactoe.agents.http_backend import HttpDecisionSource
from tictactoe.agents.llm_config import OpenAICompatibleSettings
from tictactoe.core.board import Cell, board_from_string
from tictactoe.turn_processing.board_context import BoardView, tactical_hints

SETTINGS = OpenAICompatibleSettings(model="test-model", base_url="http://llm.test/v1", api_key="sk-test", timeout_s=2.0)
BOARD = board_from_string("XX- -O- ---")
VIEW = BoardView(board=BOARD, mark=Cell.o)


def _chat_reply(content: str) -> dict[str, object]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _source(handler, **kwargs) -> HttpDecisionSource:  # type: ignore[no-untyped-def]
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpDecisionSource(settings=SETTINGS, client=client, **kwargs)


async def test_request_move_posts_chat_completion_and_parses_cell() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_chat_reply('{"cell": 2}'))

    source = _source(handler)
    proposal = await source.request_move(view=VIEW, hints=tactical_hints(BOARD, mark=Cell.o))

    assert proposal.cell == 2
    assert proposal.metadata == {"model": "test-model", "backend": "openai-http"}

    (req,) = seen
    assert str(req.url) == "http://llm.test/v1/chat/completions"
    assert req.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(req.content)
    assert body["model"] == "test-model"
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert "BLOCK needed" in body["messages"][1]["content"]
    assert "response_format" not in body


async def test_structured_output_sends_schema() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_chat_reply('{"cell": 5}'))

    source = _source(handler, structured_output=True)
    proposal = await source.request_move(view=VIEW, hints=None)

    assert proposal.cell == 5
    fmt = bodies[0]["response_format"]
    assert fmt["json_schema"]["name"] == "pick_cell"  # type: ignore[index]


async def test_out_of_range_answer_is_passed_through_for_validation() -> None:
    source = _source(lambda request: httpx.Response(200, json=_chat_reply("11")))
    proposal = await source.request_move(view=VIEW, hints=None)
    assert proposal.cell == 11


async def test_timeout_maps_to_decision_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow model", request=request)

    with pytest.raises(DecisionTimeout):
        await _source(handler).request_move(view=VIEW, hints=None)


async def test_http_error_maps_to_transport_failure() -> None:
    source = _source(lambda request: httpx.Response(500, text="model crashed"))

    with pytest.raises(DecisionTransportFailure) as e:
        await source.request_move(view=VIEW, hints=None)
    assert "HTTP 500" in str(e.value)
    assert not isinstance(e.value, DecisionTimeout)


async def test_connection_error_maps_to_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(DecisionTransportFailure):
        await _source(handler).request_move(view=VIEW, hints=None)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"error": "no choices"}),
        httpx.Response(200, json=_chat_reply("I would play the corner")),
    ],
)
async def test_unusable_bodies_map_to_parse_failure(response: httpx.Response) -> None:
    with pytest.raises(DecisionParseFailure):
        await _source(lambda request: response).request_move(view=VIEW, hints=None)


async def test_missing_credentials_is_a_transport_failure() -> None:
    settings = OpenAICompatibleSettings(model="m", base_url=None, api_key=None)
    source = HttpDecisionSource(settings=settings, client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))))

    with pytest.raises(DecisionTransportFailure):
        await source.request_move(view=VIEW, hints=None)


def test_local_base_url_gets_placeholder_key() -> None:
    settings = OpenAICompatibleSettings(model="m", base_url="http://127.0.0.1:11434/v1", api_key=None)
    assert settings.effective_api_key() == "ollama"
    assert settings.chat_completions_url == "http://127.0.0.1:11434/v1/chat/completions"


def test_factory_picks_backend_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_MODEL", "llama3.2")
    monkeypatch.delenv("TICTACTOE_DECISION_BACKEND", raising=False)

    source = create_default_decision_source()
    assert isinstance(source, HttpDecisionSource)
    assert source.settings.model == "llama3.2"

    monkeypatch.setenv("TICTACTOE_DECISION_BACKEND", "carrier-pigeon")
    with pytest.raises(ValueError):
        create_default_decision_source()
