"""Per-group turn serialization with a global concurrency limit using asyncio."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from gigaclaw.infrastructure.config import MAX_CONCURRENT_CONTAINERS
from gigaclaw.infrastructure.logger import logger

T = TypeVar("T")


@dataclass
class GroupState:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    waiting: int = 0
    active: bool = False


class GroupQueue:
    """Runs at most one turn per group folder at a time.

    Turns for different groups run concurrently, bounded by
    max_concurrent containers overall. A chat message and a scheduled task
    for the same group therefore never share the session directory.
    """

    def __init__(self, max_concurrent: int = MAX_CONCURRENT_CONTAINERS) -> None:
        self._groups: dict[str, GroupState] = {}
        self._slots = asyncio.Semaphore(max_concurrent)
        self._active_count = 0
        self._shutting_down = False

    def _get_group(self, group_folder: str) -> GroupState:
        state = self._groups.get(group_folder)
        if not state:
            state = GroupState()
            self._groups[group_folder] = state
        return state

    @property
    def active_count(self) -> int:
        return self._active_count

    def is_active(self, group_folder: str) -> bool:
        state = self._groups.get(group_folder)
        return bool(state and state.active)

    async def run(self, group_folder: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn once the group is idle and a container slot is free."""
        if self._shutting_down:
            raise RuntimeError("GroupQueue is shutting down")

        state = self._get_group(group_folder)
        if state.lock.locked():
            logger.debug("Turn already running, queued", group_folder=group_folder, waiting=state.waiting + 1)

        state.waiting += 1
        try:
            await state.lock.acquire()
        finally:
            state.waiting -= 1

        try:
            async with self._slots:
                state.active = True
                self._active_count += 1
                logger.debug("Starting turn", group_folder=group_folder, active=self._active_count)
                try:
                    return await fn()
                finally:
                    state.active = False
                    self._active_count -= 1
        finally:
            state.lock.release()

    async def shutdown(self) -> None:
        self._shutting_down = True
        logger.info("GroupQueue shutting down", active_count=self._active_count)
