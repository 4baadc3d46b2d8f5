from __future__ import annotations

from pathlib import Path
from typing import Any


class PromptLoadError(RuntimeError):
    pass


# name -> text; prompts are read once per process.
_CACHE: dict[str, str] = {}


def prompts_dir() -> Path:
    # tictactoe/prompts.py -> tictactoe/ -> project root
    return Path(__file__).resolve().parents[1] / "prompts"


def _check_name(name: str) -> None:
    if not name.endswith(".txt") or Path(name).name != name:
        raise PromptLoadError(f"Invalid prompt name {name!r}: expected a bare '<name>.txt'")


def load_prompt(name: str) -> str:
    """Load (and cache) a prompt text file from the repo `prompts/` directory.

    Example:
        load_prompt("move_system.txt")
    """

    _check_name(name)
    text = _CACHE.get(name)
    if text is None:
        path = prompts_dir() / name
        try:
            text = path.read_text(encoding="utf-8").strip() + "\n"
        except FileNotFoundError as e:
            raise PromptLoadError(f"Prompt not found: {path}") from e
        _CACHE[name] = text
    return text


def render_prompt(name: str, **fields: Any) -> str:
    """`str.format` a prompt template; a placeholder without a value is a PromptLoadError."""

    try:
        return load_prompt(name).format(**fields)
    except KeyError as e:
        raise PromptLoadError(f"Prompt {name} needs a value for {e.args[0]!r}") from e


def reset_prompt_cache_for_tests() -> None:
    _CACHE.clear()
