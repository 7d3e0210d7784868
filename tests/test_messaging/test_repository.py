"""Tests for message repository."""

import pytest

from gigaclaw.messaging.types import NewMessage


@pytest.fixture
def message_repo(db):
    return db.message_repo


def _msg(id: str, timestamp: str, chat_jid: str = "group@g.us", sender_name: str = "Alice", **kwargs) -> NewMessage:
    return NewMessage(
        id=id,
        chat_jid=chat_jid,
        sender=f"{sender_name.lower()}@s.whatsapp.net",
        sender_name=sender_name,
        content=f"message {id}",
        timestamp=timestamp,
        **kwargs,
    )


class TestMessageStorage:
    def test_since_is_exclusive_and_ordered(self, message_repo):
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:03")
        message_repo.store_message(_msg("m2", "2024-01-01T00:00:02"))
        message_repo.store_message(_msg("m1", "2024-01-01T00:00:01"))
        message_repo.store_message(_msg("m3", "2024-01-01T00:00:03"))

        result = message_repo.get_messages_since("group@g.us", "2024-01-01T00:00:01", "Neo")
        assert [m.id for m in result] == ["m2", "m3"]

    def test_empty_since_returns_everything(self, message_repo):
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:01")
        message_repo.store_message(_msg("m1", "2024-01-01T00:00:01"))
        assert len(message_repo.get_messages_since("group@g.us", "", "Neo")) == 1

    def test_excludes_assistant_messages(self, message_repo):
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:03")
        message_repo.store_message(_msg("m1", "2024-01-01T00:00:01"))
        message_repo.store_message(_msg("m2", "2024-01-01T00:00:02", sender_name="Neo"))
        message_repo.store_message(_msg("m3", "2024-01-01T00:00:03", sender_name="Bot", is_bot_message=True))

        result = message_repo.get_messages_since("group@g.us", "", "Neo")
        assert [m.id for m in result] == ["m1"]

    def test_other_chats_excluded(self, message_repo):
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:01")
        message_repo.upsert_chat("other@g.us", "2024-01-01T00:00:01")
        message_repo.store_message(_msg("m1", "2024-01-01T00:00:01"))
        message_repo.store_message(_msg("m2", "2024-01-01T00:00:01", chat_jid="other@g.us"))
        assert [m.id for m in message_repo.get_messages_since("group@g.us", "", "Neo")] == ["m1"]

    def test_duplicate_ignored(self, message_repo):
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:01")
        message_repo.store_message(_msg("m1", "2024-01-01T00:00:01"))
        message_repo.store_message(_msg("m1", "2024-01-01T00:00:01"))
        assert len(message_repo.get_messages_since("group@g.us", "", "Neo")) == 1


class TestChatMetadata:
    def test_insert_defaults_name_to_jid(self, message_repo):
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:01")
        chats = message_repo.get_all_chats()
        assert chats[0].name == "group@g.us"

    def test_keeps_latest_time(self, message_repo):
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:05", name="Family")
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:01")
        chat = message_repo.get_all_chats()[0]
        assert chat.last_message_time == "2024-01-01T00:00:05"
        assert chat.name == "Family"

    def test_rename(self, message_repo):
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:01", name="Old")
        message_repo.upsert_chat("group@g.us", "2024-01-01T00:00:02", name="New")
        assert message_repo.get_all_chats()[0].name == "New"

    def test_most_recent_first(self, message_repo):
        message_repo.upsert_chat("a@g.us", "2024-01-01T00:00:01")
        message_repo.upsert_chat("b@g.us", "2024-01-01T00:00:02")
        assert [c.jid for c in message_repo.get_all_chats()] == ["b@g.us", "a@g.us"]
