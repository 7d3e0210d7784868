"""Message and chat metadata DB operations."""

from __future__ import annotations

import sqlite3

from gigaclaw.messaging.types import ChatInfo, NewMessage


class MessageRepository:
    """Combined message + chat metadata repository."""

    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    # --- Message storage ---

    def store_message(self, msg: NewMessage) -> None:
        self._db.execute(
            """INSERT OR IGNORE INTO messages
               (id, chat_jid, sender, sender_name, content, timestamp, is_from_me, is_bot_message)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                msg.id,
                msg.chat_jid,
                msg.sender,
                msg.sender_name,
                msg.content,
                msg.timestamp,
                1 if msg.is_from_me else 0,
                1 if msg.is_bot_message else 0,
            ),
        )
        self._db.commit()

    def get_messages_since(self, chat_jid: str, since_timestamp: str, excluded_sender_name: str) -> list[NewMessage]:
        """Messages for a chat strictly after a timestamp, oldest first.

        The assistant's own messages (bot-flagged or sent under its name) are excluded.
        """
        rows = self._db.execute(
            """SELECT * FROM messages
               WHERE chat_jid = ? AND timestamp > ? AND is_bot_message = 0 AND sender_name != ?
               ORDER BY timestamp""",
            (chat_jid, since_timestamp, excluded_sender_name),
        ).fetchall()
        return [self._row_to_message(row) for row in rows]

    # --- Chat metadata ---

    def upsert_chat(self, jid: str, timestamp: str, name: str | None = None) -> None:
        """Create or update chat metadata."""
        existing = self._db.execute("SELECT * FROM chats WHERE jid = ?", (jid,)).fetchone()

        if existing:
            if name:
                self._db.execute(
                    "UPDATE chats SET last_message_time = MAX(last_message_time, ?), name = ? WHERE jid = ?",
                    (timestamp, name, jid),
                )
            else:
                self._db.execute(
                    "UPDATE chats SET last_message_time = MAX(last_message_time, ?) WHERE jid = ?", (timestamp, jid)
                )
        else:
            self._db.execute(
                "INSERT INTO chats (jid, name, last_message_time) VALUES (?, ?, ?)",
                (jid, name or jid, timestamp),
            )
        self._db.commit()

    def get_all_chats(self) -> list[ChatInfo]:
        rows = self._db.execute("SELECT * FROM chats ORDER BY last_message_time DESC").fetchall()
        return [ChatInfo(jid=row["jid"], name=row["name"] or "", last_message_time=row["last_message_time"] or "") for row in rows]

    def _row_to_message(self, row: sqlite3.Row) -> NewMessage:
        return NewMessage(
            id=row["id"],
            chat_jid=row["chat_jid"],
            sender=row["sender"],
            sender_name=row["sender_name"],
            content=row["content"],
            timestamp=row["timestamp"],
            is_from_me=bool(row["is_from_me"]),
            is_bot_message=bool(row["is_bot_message"]),
        )
