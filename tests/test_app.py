"""End-to-end tests for the orchestrator with a scripted container."""

import pytest
import pytest_asyncio

from gigaclaw.app import Orchestrator
from gigaclaw.infrastructure.config import ASSISTANT_NAME
from gigaclaw.messaging.types import NewMessage
from gigaclaw.scheduling.types import ScheduledTask


class FakeChannel:
    name = "fake"

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send_message(self, jid: str, text: str) -> None:
        self.sent.append((jid, text))

    def owns_jid(self, jid: str) -> bool:
        return jid.endswith("@g.us")


@pytest.fixture
def channel():
    return FakeChannel()


@pytest_asyncio.fixture
async def orchestrator(db, paths, channel, script_runtime, echo_child):
    orch = Orchestrator(db=db, runtime=script_runtime(echo_child), paths=paths, channels=[channel])
    await orch.start(init_db=False)
    yield orch
    await orch.shutdown()


def _msg(id: str, chat_jid: str, content: str, timestamp: str) -> NewMessage:
    return NewMessage(
        id=id,
        chat_jid=chat_jid,
        sender="alice@s.whatsapp.net",
        sender_name="Alice",
        content=content,
        timestamp=timestamp,
    )


class TestOrchestrator:
    @pytest.mark.asyncio
    async def test_start_checks_runtime(self, db, paths, script_runtime, echo_child):
        runtime = script_runtime(echo_child)
        orch = Orchestrator(db=db, runtime=runtime, paths=paths)
        await orch.start(init_db=False)
        assert runtime.started

    @pytest.mark.asyncio
    async def test_message_turn_end_to_end(self, orchestrator, group_factory, channel, db, paths):
        orchestrator.register_group("main@g.us", group_factory("main"))

        handled = await orchestrator.handle_message(
            _msg("m1", "main@g.us", "what's for dinner", "2024-01-01T00:00:01"), chat_name="Main",
        )

        assert handled is True
        jid, text = channel.sent[0]
        assert jid == "main@g.us"
        assert f"{ASSISTANT_NAME}: echo:<messages>" in text
        assert "what's for dinner" in text
        assert db.session_repo.get_session("main") == "sess-main"
        assert list(paths.logs_dir("main").glob("container-*.log"))

    @pytest.mark.asyncio
    async def test_unregistered_chat_is_stored_but_not_run(self, orchestrator, channel, db):
        handled = await orchestrator.handle_message(_msg("m1", "stranger@g.us", "hello", "2024-01-01T00:00:01"))
        assert handled is False
        assert channel.sent == []
        assert [c.jid for c in db.message_repo.get_all_chats()] == ["stranger@g.us"]

    @pytest.mark.asyncio
    async def test_register_group_persists(self, orchestrator, group_factory, db, paths):
        orchestrator.register_group("family@g.us", group_factory("family"))
        assert db.group_repo.get_registered_group("family@g.us").folder == "family"
        assert paths.logs_dir("family").is_dir()

    @pytest.mark.asyncio
    async def test_scheduled_task(self, orchestrator, group_factory, channel, db):
        orchestrator.register_group("family@g.us", group_factory("family"))
        task = ScheduledTask(
            id="task-1",
            group_folder="family",
            chat_jid="family@g.us",
            prompt="weekly summary",
            schedule_type="interval",
            schedule_value="604800000",
            created_at="2024-01-01T00:00:00",
        )
        db.task_repo.create_task(task)

        output = await orchestrator.run_task(task)

        assert output.status == "success"
        assert output.result == "echo:weekly summary"
        assert channel.sent[0][0] == "family@g.us"
        assert channel.sent[0][1].endswith(f"{ASSISTANT_NAME}: echo:weekly summary")
        assert db.session_repo.get_session("family") is None

    def test_duplicate_channel_rejected(self, channel):
        orch = Orchestrator(channels=[channel])
        with pytest.raises(ValueError, match="already registered"):
            orch.add_channel(FakeChannel())
