from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from autogen import LLMConfig

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_S = 10.0


@dataclass(frozen=True, slots=True)
class OpenAICompatibleSettings:
    model: str
    base_url: str | None
    api_key: str | None
    timeout_s: float = DEFAULT_TIMEOUT_S
    temperature: float = 0.3

    @property
    def chat_completions_url(self) -> str:
        base = (self.base_url or "https://api.openai.com/v1").rstrip("/")
        return f"{base}/chat/completions"

    def effective_api_key(self) -> str:
        # Many OpenAI-compatible servers ignore the key but some SDKs require it.
        api_key = self.api_key or ("ollama" if self.base_url else None)
        if not api_key:
            raise RuntimeError(
                "Set OPENAI_API_KEY for hosted OpenAI, or set OPENAI_BASE_URL for a local OpenAI-compatible server"
            )
        return api_key


def settings_from_env(*, default_model: str = DEFAULT_MODEL) -> OpenAICompatibleSettings:
    return OpenAICompatibleSettings(
        model=os.environ.get("OPENAI_MODEL", default_model),
        # For Ollama, typically http://127.0.0.1:11434/v1
        base_url=os.environ.get("OPENAI_BASE_URL"),
        api_key=os.environ.get("OPENAI_API_KEY"),
        timeout_s=float(os.environ.get("OPENAI_TIMEOUT_S", DEFAULT_TIMEOUT_S)),
    )


def llm_config_from_settings(s: OpenAICompatibleSettings) -> LLMConfig:
    # AG2 expects a 'config_list' similar to OAI_CONFIG_LIST.
    config: dict[str, Any] = {
        "model": s.model,
        "api_key": s.effective_api_key(),
    }
    if s.base_url:
        config["base_url"] = s.base_url

    return LLMConfig(config_list=[config], temperature=s.temperature, timeout=max(1, int(s.timeout_s)))
