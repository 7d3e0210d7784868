"""Writes task and group snapshots for containers to read."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from gigaclaw.groups.paths import GroupPaths
from gigaclaw.infrastructure.files import write_atomic
from gigaclaw.scheduling.types import ScheduledTask


@dataclass
class AvailableGroup:
    jid: str
    name: str
    last_activity: str
    is_registered: bool


def _write_json(path: Path, data: object) -> None:
    write_atomic(path, json.dumps(data, indent=2))


class SnapshotWriter:
    """Writes JSON snapshot files for container-visible state.

    Main sees every task and every chat; any other group sees only its own
    tasks and an empty chat list.
    """

    def __init__(self, paths: GroupPaths | None = None) -> None:
        self._paths = paths or GroupPaths()

    def write_tasks(self, group_folder: str, is_main: bool, tasks: list[dict]) -> None:
        """Write a filtered tasks snapshot for the container."""
        ipc_dir = self._paths.ipc_dir(group_folder)
        ipc_dir.mkdir(parents=True, exist_ok=True)

        filtered = tasks if is_main else [t for t in tasks if t.get("group_folder") == group_folder]
        _write_json(ipc_dir / "current_tasks.json", filtered)

    def write_groups(self, group_folder: str, is_main: bool, groups: list[AvailableGroup]) -> None:
        """Write available groups snapshot. Only main sees all groups."""
        ipc_dir = self._paths.ipc_dir(group_folder)
        ipc_dir.mkdir(parents=True, exist_ok=True)

        visible = [
            {"jid": g.jid, "name": g.name, "lastActivity": g.last_activity, "isRegistered": g.is_registered}
            for g in groups
        ] if is_main else []

        _write_json(
            ipc_dir / "available_groups.json",
            {"groups": visible, "lastSync": datetime.now(timezone.utc).isoformat()},
        )

    def prepare_for_execution(
        self,
        group_folder: str,
        is_main: bool,
        tasks: list[ScheduledTask],
        available_groups: list[AvailableGroup],
    ) -> None:
        """Regenerate every snapshot a turn's container reads."""
        self.write_tasks(group_folder, is_main, [t.snapshot() for t in tasks])
        self.write_groups(group_folder, is_main, available_groups)
