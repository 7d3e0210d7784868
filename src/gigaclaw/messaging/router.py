"""Message router: trigger policy, prompt windows and delivery."""

from __future__ import annotations

import re
import time
from typing import Awaitable, Callable

from gigaclaw.execution.agent_executor import AgentExecutor
from gigaclaw.execution.execution_queue import GroupQueue
from gigaclaw.execution.types import ContainerOutput
from gigaclaw.groups.types import RegisteredGroup
from gigaclaw.infrastructure.config import ASSISTANT_NAME, MESSAGE_PREFIX, TRIGGER_PATTERN
from gigaclaw.infrastructure.logger import logger
from gigaclaw.messaging.formatter import format_messages, format_outbound, strip_internal_tags
from gigaclaw.messaging.repository import MessageRepository
from gigaclaw.messaging.types import NewMessage
from gigaclaw.messaging.watermarks import WatermarkStore
from gigaclaw.scheduling.repository import TaskRepository
from gigaclaw.scheduling.types import ScheduledTask, TaskRunLog

SendMessage = Callable[[str, str], Awaitable[None]]


def has_trigger(content: str, group: RegisteredGroup, default: re.Pattern[str] = TRIGGER_PATTERN) -> bool:
    """Check whether a message addresses the assistant in this group."""
    pattern = default
    if group.trigger:
        try:
            pattern = re.compile(group.trigger, re.IGNORECASE)
        except re.error:
            logger.warning("Invalid group trigger, using default", group=group.name, trigger=group.trigger)
    return bool(pattern.search(content.strip()))


class MessageRouter:
    """Turns inbound messages and due tasks into agent turns.

    A chat's watermark only advances after a turn returns a result, so a
    failed window is retried whole on the next qualifying message.
    """

    def __init__(
        self,
        registered_groups: Callable[[], dict[str, RegisteredGroup]],
        message_repo: MessageRepository,
        task_repo: TaskRepository,
        agent_executor: AgentExecutor,
        watermarks: WatermarkStore,
        queue: GroupQueue,
        send_message: SendMessage,
        assistant_name: str = ASSISTANT_NAME,
        trigger_pattern: re.Pattern[str] = TRIGGER_PATTERN,
        message_prefix: str = MESSAGE_PREFIX,
    ) -> None:
        self._registered_groups = registered_groups
        self._message_repo = message_repo
        self._task_repo = task_repo
        self._agent_executor = agent_executor
        self._watermarks = watermarks
        self._queue = queue
        self._send_message = send_message
        self._assistant_name = assistant_name
        self._trigger_pattern = trigger_pattern
        self._message_prefix = message_prefix

    async def process_message(self, msg: NewMessage) -> bool:
        """Route one inbound message. Returns True if a turn produced a result."""
        logger.info(
            "Message received",
            id=msg.id,
            chat_jid=msg.chat_jid,
            sender=msg.sender,
            content_length=len(msg.content),
        )

        group = self._registered_groups().get(msg.chat_jid)
        if not group:
            logger.warning("No registered group for chat", chat_jid=msg.chat_jid)
            return False

        # Main group responds to all messages; other groups require the trigger
        if not group.is_main and not has_trigger(msg.content, group, self._trigger_pattern):
            return False

        return await self._queue.run(group.folder, lambda: self._process_window(group, msg))

    async def _process_window(self, group: RegisteredGroup, msg: NewMessage) -> bool:
        chat_jid = msg.chat_jid
        since = self._watermarks.get(chat_jid)
        window = self._message_repo.get_messages_since(chat_jid, since, self._assistant_name)
        if not window:
            logger.debug("No unconsumed messages", group=group.name, since=since)
            return False

        logger.info("Processing messages", group=group.name, count=len(window))
        output = await self._agent_executor.execute(group, format_messages(window), chat_jid)

        if output.status == "error" or output.result is None:
            logger.warning("Turn produced no result, watermark unchanged", group=group.name, since=since)
            return False

        # The window may already hold messages queued behind the trigger
        self._watermarks.advance(chat_jid, max(msg.timestamp, window[-1].timestamp))
        await self._deliver(chat_jid, output.result)
        return True

    async def run_task(self, task: ScheduledTask) -> ContainerOutput:
        """Run a due scheduled task as a turn of its owning group."""
        group = next((g for g in self._registered_groups().values() if g.folder == task.group_folder), None)
        if not group:
            logger.warning("Scheduled task group not registered", task_id=task.id, group_folder=task.group_folder)
            output = ContainerOutput.failure(f"Group not found: {task.group_folder}")
            self._log_task_run(task, output, 0)
            return output

        return await self._queue.run(group.folder, lambda: self._run_task_turn(group, task))

    async def _run_task_turn(self, group: RegisteredGroup, task: ScheduledTask) -> ContainerOutput:
        logger.info("Running scheduled task", task_id=task.id, group=group.name, context_mode=task.context_mode)
        started = time.monotonic()
        output = await self._agent_executor.execute(
            group,
            task.prompt,
            task.chat_jid,
            is_scheduled_task=True,
            use_session=task.uses_group_session,
        )
        duration_ms = int((time.monotonic() - started) * 1000)

        if output.status == "success" and output.result:
            await self._deliver(task.chat_jid, output.result)

        self._log_task_run(task, output, duration_ms)
        return output

    def _log_task_run(self, task: ScheduledTask, output: ContainerOutput, duration_ms: int) -> None:
        log = TaskRunLog.from_output(task.id, output, duration_ms)
        self._task_repo.log_task_run(log)
        self._task_repo.record_run(task.id, log.summary)

    async def _deliver(self, chat_jid: str, result: str) -> None:
        text = strip_internal_tags(result)
        if not text:
            return
        await self._send_message(chat_jid, format_outbound(text, self._assistant_name, self._message_prefix))
