from __future__ import annotations

from tictactoe.sessions import SessionStore, store


def get_store() -> SessionStore:
    """Process-wide session store; tests override this dependency."""

    return store
