"""Centralized path construction for group-related directories and files."""

from __future__ import annotations

from pathlib import Path

from gigaclaw.infrastructure.config import DATA_DIR, GLOBAL_GROUP_FOLDER, GROUPS_DIR


class GroupPaths:
    """Path construction for group directories, rooted at configurable base dirs."""

    def __init__(self, groups_dir: Path = GROUPS_DIR, data_dir: Path = DATA_DIR) -> None:
        self.groups_dir = groups_dir
        self.data_dir = data_dir

    def group_dir(self, folder: str) -> Path:
        """Root directory for a group: groups/{folder}"""
        return self.groups_dir / folder

    def logs_dir(self, folder: str) -> Path:
        """Logs directory: groups/{folder}/logs"""
        return self.groups_dir / folder / "logs"

    def global_dir(self) -> Path:
        """Shared read-only context for non-main groups: groups/global"""
        return self.groups_dir / GLOBAL_GROUP_FOLDER

    def ipc_dir(self, folder: str) -> Path:
        """IPC root directory: data/ipc/{folder}"""
        return self.data_dir / "ipc" / folder

    def ipc_messages_dir(self, folder: str) -> Path:
        """IPC messages directory: data/ipc/{folder}/messages"""
        return self.data_dir / "ipc" / folder / "messages"

    def ipc_tasks_dir(self, folder: str) -> Path:
        """IPC tasks directory: data/ipc/{folder}/tasks"""
        return self.data_dir / "ipc" / folder / "tasks"

    def sessions_dir(self, folder: str) -> Path:
        """Session home directory: data/sessions/{folder}"""
        return self.data_dir / "sessions" / folder

    def credentials_dir(self, folder: str) -> Path:
        """Agent credentials directory inside the session home: data/sessions/{folder}/.claude"""
        return self.data_dir / "sessions" / folder / ".claude"

    def env_dir(self) -> Path:
        """Filtered environment directory: data/env"""
        return self.data_dir / "env"
