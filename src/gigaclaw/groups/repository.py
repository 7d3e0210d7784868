"""Registered group persistence."""

from __future__ import annotations

import json
import sqlite3

from gigaclaw.groups.types import ContainerConfig, RegisteredGroup


def _safe_parse(raw: str) -> dict | None:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


class GroupRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def get_registered_group(self, jid: str) -> RegisteredGroup | None:
        row = self._db.execute("SELECT * FROM registered_groups WHERE jid = ?", (jid,)).fetchone()
        if not row:
            return None
        return self._row_to_group(row)

    def set_registered_group(self, jid: str, group: RegisteredGroup) -> None:
        self._db.execute(
            """INSERT OR REPLACE INTO registered_groups
               (jid, name, folder, trigger_pattern, added_at, container_config)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                jid,
                group.name,
                group.folder,
                group.trigger,
                group.added_at,
                group.container_config.model_dump_json() if group.container_config else None,
            ),
        )
        self._db.commit()

    def get_all_registered_groups(self) -> dict[str, RegisteredGroup]:
        rows = self._db.execute("SELECT * FROM registered_groups").fetchall()
        return {row["jid"]: self._row_to_group(row) for row in rows}

    def _row_to_group(self, row: sqlite3.Row) -> RegisteredGroup:
        container_config = None
        if row["container_config"]:
            parsed = _safe_parse(row["container_config"])
            if parsed:
                container_config = ContainerConfig(**parsed)

        return RegisteredGroup(
            name=row["name"],
            folder=row["folder"],
            trigger=row["trigger_pattern"],
            added_at=row["added_at"],
            container_config=container_config,
        )
