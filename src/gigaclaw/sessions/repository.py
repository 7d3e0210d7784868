"""Session handle persistence."""

from __future__ import annotations

import sqlite3


class SessionRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def get_session(self, group_folder: str) -> str | None:
        row = self._db.execute("SELECT session_id FROM sessions WHERE group_folder = ?", (group_folder,)).fetchone()
        return row["session_id"] if row else None

    def set_session(self, group_folder: str, session_id: str) -> None:
        self._db.execute(
            "INSERT OR REPLACE INTO sessions (group_folder, session_id) VALUES (?, ?)", (group_folder, session_id)
        )
        self._db.commit()

    def get_all_sessions(self) -> dict[str, str]:
        rows = self._db.execute("SELECT group_folder, session_id FROM sessions").fetchall()
        return {row["group_folder"]: row["session_id"] for row in rows}
