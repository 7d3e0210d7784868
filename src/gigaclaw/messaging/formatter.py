"""Message formatting transforms."""

from __future__ import annotations

import re

from gigaclaw.messaging.types import NewMessage


def format_messages(messages: list[NewMessage]) -> str:
    """Format a list of messages into a single prompt string.

    Each message is wrapped in XML-like tags with sender and time
    attributes; the whole window is wrapped in <messages>.
    """
    lines = [
        f'<message sender="{_xml_escape(m.sender_name)}" time="{_xml_escape(m.timestamp)}">'
        f"{_xml_escape(m.content)}</message>"
        for m in messages
    ]
    return "<messages>\n" + "\n".join(lines) + "\n</messages>"


def format_outbound(text: str, assistant_name: str, prefix: str = "") -> str:
    return f"{prefix}{assistant_name}: {text}"


def strip_internal_tags(text: str) -> str:
    """Strip <internal>...</internal> blocks from agent output."""
    return re.sub(r"<internal>[\s\S]*?</internal>", "", text).strip()


def _xml_escape(s: str) -> str:
    """Escape special XML characters."""
    return s.replace("&", "&amp;").replace('"', "&quot;").replace("<", "&lt;").replace(">", "&gt;")
