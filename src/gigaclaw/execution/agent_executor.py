"""Agent executor: ties container execution to session tracking and snapshots."""

from __future__ import annotations

from typing import Callable

from gigaclaw.execution.container_runner import ContainerRunner
from gigaclaw.execution.types import ContainerInput, ContainerOutput
from gigaclaw.groups.types import RegisteredGroup
from gigaclaw.infrastructure.logger import logger
from gigaclaw.scheduling.snapshot_writer import AvailableGroup, SnapshotWriter
from gigaclaw.scheduling.types import ScheduledTask
from gigaclaw.sessions.manager import SessionManager


class AgentExecutor:
    """Runs one turn for a group: snapshots, container, session handle."""

    def __init__(
        self,
        session_manager: SessionManager,
        snapshot_writer: SnapshotWriter,
        container_runner: ContainerRunner,
        get_tasks: Callable[[], list[ScheduledTask]],
        get_available_groups: Callable[[], list[AvailableGroup]],
    ) -> None:
        self._session_manager = session_manager
        self._snapshot_writer = snapshot_writer
        self._container_runner = container_runner
        self._get_tasks = get_tasks
        self._get_available_groups = get_available_groups

    async def execute(
        self,
        group: RegisteredGroup,
        prompt: str,
        chat_jid: str,
        is_scheduled_task: bool = False,
        use_session: bool = True,
    ) -> ContainerOutput:
        """Execute an agent container and return its output.

        With use_session=False the turn starts a fresh context and the group's
        stored session handle is neither passed nor replaced.
        """
        is_main = group.is_main
        session_id = self._session_manager.get(group.folder) if use_session else None

        try:
            self._snapshot_writer.prepare_for_execution(
                group.folder, is_main, self._get_tasks(), self._get_available_groups()
            )
        except OSError:
            logger.exception("Failed to write IPC snapshots", group=group.name)
            return ContainerOutput.failure("Failed to write IPC snapshots")

        output = await self._container_runner.run(
            group,
            ContainerInput(
                prompt=prompt,
                session_id=session_id,
                group_folder=group.folder,
                chat_jid=chat_jid,
                is_main=is_main,
                is_scheduled_task=is_scheduled_task,
            ),
        )

        if output.status == "error":
            logger.error("Container agent error", group=group.name, error=output.error)
            return output

        if use_session and output.new_session_id:
            self._session_manager.set(group.folder, output.new_session_id)

        return output
