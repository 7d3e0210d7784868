"""Router state key-value persistence."""

from __future__ import annotations

import json
import sqlite3


class StateRepository:
    """String values keyed by name, with JSON helpers for structured state."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def get_router_state(self, key: str) -> str | None:
        row = self._db.execute("SELECT value FROM router_state WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_router_state(self, key: str, value: str) -> None:
        self._db.execute("INSERT OR REPLACE INTO router_state (key, value) VALUES (?, ?)", (key, value))
        self._db.commit()

    def get_json(self, key: str) -> object | None:
        """Decoded value for key, or None when unset.

        Raises json.JSONDecodeError when the stored value is not JSON.
        """
        raw = self.get_router_state(key)
        if not raw:
            return None
        return json.loads(raw)

    def set_json(self, key: str, value: object) -> None:
        self.set_router_state(key, json.dumps(value, sort_keys=True))
