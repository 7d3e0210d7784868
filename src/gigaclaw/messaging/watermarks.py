"""Per-chat watermark of the last message incorporated into a completed turn."""

from __future__ import annotations

import json

from gigaclaw.infrastructure.logger import logger
from gigaclaw.infrastructure.state_repo import StateRepository

STATE_KEY = "last_agent_timestamp"


class WatermarkStore:
    """Monotonic per-chat timestamps, persisted on every advance."""

    def __init__(self, state_repo: StateRepository) -> None:
        self._state_repo = state_repo
        self._marks: dict[str, str] = {}

    def load(self) -> None:
        try:
            loaded = self._state_repo.get_json(STATE_KEY)
        except json.JSONDecodeError:
            logger.warning("Corrupted last_agent_timestamp in DB, resetting")
            loaded = None
        self._marks = {str(k): str(v) for k, v in loaded.items()} if isinstance(loaded, dict) else {}

    def get(self, chat_jid: str) -> str:
        return self._marks.get(chat_jid, "")

    def advance(self, chat_jid: str, timestamp: str) -> bool:
        """Move the watermark forward. Returns False when timestamp is not newer."""
        if timestamp <= self._marks.get(chat_jid, ""):
            return False
        self._marks[chat_jid] = timestamp
        self.save()
        return True

    def save(self) -> None:
        self._state_repo.set_json(STATE_KEY, self._marks)

    def get_all(self) -> dict[str, str]:
        return dict(self._marks)
