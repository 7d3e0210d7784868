"""Orchestrator class: composes services and wires subsystems."""

from __future__ import annotations

from gigaclaw.execution.agent_executor import AgentExecutor
from gigaclaw.execution.container_runner import ContainerRunner
from gigaclaw.execution.container_runtime import ContainerRuntime, resolve_runtime
from gigaclaw.execution.execution_queue import GroupQueue
from gigaclaw.execution.mount_builder import MountBuilder
from gigaclaw.execution.mount_security import MountSecurityValidator
from gigaclaw.execution.types import ContainerOutput
from gigaclaw.groups.paths import GroupPaths
from gigaclaw.groups.types import RegisteredGroup
from gigaclaw.infrastructure.database import AppDatabase
from gigaclaw.infrastructure.logger import logger
from gigaclaw.messaging.router import MessageRouter
from gigaclaw.messaging.types import Channel, NewMessage
from gigaclaw.messaging.watermarks import WatermarkStore
from gigaclaw.scheduling.snapshot_writer import AvailableGroup, SnapshotWriter
from gigaclaw.scheduling.types import ScheduledTask
from gigaclaw.sessions.manager import SessionManager


class Orchestrator:
    """Composes all services and manages the application lifecycle."""

    def __init__(
        self,
        db: AppDatabase | None = None,
        runtime: ContainerRuntime | None = None,
        paths: GroupPaths | None = None,
        channels: list[Channel] | None = None,
    ) -> None:
        self._db = db or AppDatabase()
        self._runtime = runtime
        self._paths = paths or GroupPaths()
        self._channels: list[Channel] = list(channels or [])
        self._queue = GroupQueue()
        self._registered_groups: dict[str, RegisteredGroup] = {}
        self._sessions: SessionManager | None = None
        self._watermarks: WatermarkStore | None = None
        self._router: MessageRouter | None = None

    @property
    def router(self) -> MessageRouter:
        assert self._router is not None, "Orchestrator not started"
        return self._router

    async def start(self, init_db: bool = True) -> None:
        """Check the container runtime, load state, and wire the router."""
        logger.info("Starting GigaClaw...")

        runtime = self._runtime or resolve_runtime()
        runtime.ensure_running()

        if init_db:
            self._db.init()

        self._registered_groups = self._db.group_repo.get_all_registered_groups()
        logger.info("Loaded registered groups", count=len(self._registered_groups))

        self._sessions = SessionManager(self._db.session_repo)
        self._sessions.load_from_db()
        self._watermarks = WatermarkStore(self._db.state_repo)
        self._watermarks.load()

        container_runner = ContainerRunner(
            runtime=runtime,
            mount_builder=MountBuilder(validator=MountSecurityValidator(), paths=self._paths),
            paths=self._paths,
        )
        agent_executor = AgentExecutor(
            session_manager=self._sessions,
            snapshot_writer=SnapshotWriter(self._paths),
            container_runner=container_runner,
            get_tasks=self._db.task_repo.get_all_tasks,
            get_available_groups=self._get_available_groups,
        )
        self._router = MessageRouter(
            registered_groups=lambda: self._registered_groups,
            message_repo=self._db.message_repo,
            task_repo=self._db.task_repo,
            agent_executor=agent_executor,
            watermarks=self._watermarks,
            queue=self._queue,
            send_message=self._send_message,
        )
        logger.info("GigaClaw started successfully")

    async def handle_message(self, msg: NewMessage, chat_name: str | None = None) -> bool:
        """Inbound entry point for transports: store, then route."""
        self._db.message_repo.upsert_chat(msg.chat_jid, msg.timestamp, chat_name)
        self._db.message_repo.store_message(msg)
        try:
            return await self.router.process_message(msg)
        except Exception:
            logger.exception("Failed to process message", chat_jid=msg.chat_jid, id=msg.id)
            return False

    async def run_task(self, task: ScheduledTask) -> ContainerOutput:
        """Entry point for a scheduler firing a due task."""
        return await self.router.run_task(task)

    def register_group(self, jid: str, group: RegisteredGroup) -> None:
        self._registered_groups[jid] = group
        self._db.group_repo.set_registered_group(jid, group)
        self._paths.logs_dir(group.folder).mkdir(parents=True, exist_ok=True)
        logger.info("Group registered", jid=jid, name=group.name, folder=group.folder)

    def add_channel(self, channel: Channel) -> None:
        if any(c.name == channel.name for c in self._channels):
            raise ValueError(f'Channel "{channel.name}" is already registered')
        self._channels.append(channel)

    async def _send_message(self, jid: str, text: str) -> None:
        channel = next((c for c in self._channels if c.owns_jid(jid)), None)
        if channel:
            await channel.send_message(jid, text)
        else:
            logger.warning("Cannot send message: no channel owns JID", jid=jid)

    def _get_available_groups(self) -> list[AvailableGroup]:
        """Get all known chats as available groups."""
        return [
            AvailableGroup(
                jid=chat.jid,
                name=chat.name,
                last_activity=chat.last_message_time,
                is_registered=chat.jid in self._registered_groups,
            )
            for chat in self._db.message_repo.get_all_chats()
        ]

    async def shutdown(self) -> None:
        """Gracefully shut down all services."""
        logger.info("Shutting down GigaClaw...")
        await self._queue.shutdown()
        if self._watermarks is not None:
            self._watermarks.save()
        self._db.close()
        logger.info("Shutdown complete")
