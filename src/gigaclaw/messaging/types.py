"""Messaging domain types and the outbound Channel protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class NewMessage(BaseModel):
    id: str
    chat_jid: str
    sender: str
    sender_name: str
    content: str
    timestamp: str
    is_from_me: bool = False
    is_bot_message: bool = False


class ChatInfo(BaseModel):
    jid: str
    name: str = ""
    last_message_time: str = ""


@runtime_checkable
class Channel(Protocol):
    """Outbound side of a chat transport."""

    name: str

    async def send_message(self, jid: str, text: str) -> None: ...
    def owns_jid(self, jid: str) -> bool: ...
