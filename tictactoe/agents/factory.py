from __future__ import annotations

import os
from typing import cast

from tictactoe.agents.base import DecisionSource
from tictactoe.agents.llm_config import settings_from_env


def create_default_decision_source() -> DecisionSource:
    """Create the default LLM-backed decision source.

    `TICTACTOE_DECISION_BACKEND` picks the transport: `http` (default, plain httpx)
    or `ag2` (AG2/autogen agent). Model configuration is read from env.
    """

    backend = os.environ.get("TICTACTOE_DECISION_BACKEND", "http").strip().lower()
    settings = settings_from_env()

    if backend == "ag2":
        from tictactoe.agents.ag2_backend import Ag2DecisionSource

        return cast(DecisionSource, Ag2DecisionSource(settings=settings))
    if backend == "http":
        from tictactoe.agents.http_backend import HttpDecisionSource

        return cast(DecisionSource, HttpDecisionSource(settings=settings))

    raise ValueError(f"Unknown TICTACTOE_DECISION_BACKEND: {backend!r} (expected 'http' or 'ag2')")
