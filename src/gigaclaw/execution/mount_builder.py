"""Builds the volume mount set for a container turn."""

from __future__ import annotations

from pathlib import Path

from gigaclaw.execution.errors import MountConfigurationError
from gigaclaw.execution.mount_security import MountSecurityValidator
from gigaclaw.execution.types import VolumeMount
from gigaclaw.groups.paths import GroupPaths
from gigaclaw.groups.types import RegisteredGroup
from gigaclaw.infrastructure.config import ALLOWED_ENV_VARS, PROJECT_ROOT
from gigaclaw.infrastructure.files import write_atomic
from gigaclaw.infrastructure.logger import logger

PROJECT_MOUNT = "/workspace/project"
GROUP_MOUNT = "/workspace/group"
GLOBAL_MOUNT = "/workspace/global"
HOME_MOUNT = "/home/user"
IPC_MOUNT = "/workspace/ipc"
ENV_MOUNT = "/workspace/env-dir"


def filter_env_file(env_file: Path, allowed: tuple[str, ...] = ALLOWED_ENV_VARS) -> list[str]:
    """Return the lines of env_file that assign one of the allowed variables."""
    try:
        content = env_file.read_text()
    except OSError:
        return []

    lines: list[str] = []
    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        if any(trimmed.startswith(f"{name}=") for name in allowed):
            lines.append(trimmed)
    return lines


class MountBuilder:
    """Derives fixed and variable mounts for a group."""

    def __init__(
        self,
        validator: MountSecurityValidator | None = None,
        paths: GroupPaths | None = None,
        project_root: Path = PROJECT_ROOT,
    ) -> None:
        self._validator = validator or MountSecurityValidator()
        self._paths = paths or GroupPaths()
        self._project_root = project_root

    def build(self, group: RegisteredGroup, is_main: bool) -> list[VolumeMount]:
        mounts: list[VolumeMount] = []
        group_dir = self._paths.group_dir(group.folder)
        group_dir.mkdir(parents=True, exist_ok=True)

        if is_main:
            mounts.append(VolumeMount(str(self._project_root), PROJECT_MOUNT))
            mounts.append(VolumeMount(str(group_dir), GROUP_MOUNT))
        else:
            mounts.append(VolumeMount(str(group_dir), GROUP_MOUNT))
            global_dir = self._paths.global_dir()
            if global_dir.exists():
                mounts.append(VolumeMount(str(global_dir), GLOBAL_MOUNT, readonly=True))

        # Session home, backs session continuity across turns
        self._paths.credentials_dir(group.folder).mkdir(parents=True, exist_ok=True)
        mounts.append(VolumeMount(str(self._paths.sessions_dir(group.folder)), HOME_MOUNT))

        self._paths.ipc_messages_dir(group.folder).mkdir(parents=True, exist_ok=True)
        self._paths.ipc_tasks_dir(group.folder).mkdir(parents=True, exist_ok=True)
        mounts.append(VolumeMount(str(self._paths.ipc_dir(group.folder)), IPC_MOUNT))

        env_dir = self._write_filtered_env()
        if env_dir is not None:
            mounts.append(VolumeMount(str(env_dir), ENV_MOUNT, readonly=True))

        if group.container_config and group.container_config.additional_mounts:
            mounts.extend(
                self._validator.validate(group.container_config.additional_mounts, group.name, is_main)
            )

        _check_unique_targets(mounts)
        return mounts

    def _write_filtered_env(self) -> Path | None:
        env_dir = self._paths.env_dir()
        env_dir.mkdir(parents=True, exist_ok=True)
        target = env_dir / "env"

        lines = filter_env_file(self._project_root / ".env")
        if not lines:
            target.unlink(missing_ok=True)
            return None

        write_atomic(target, "\n".join(lines) + "\n")
        logger.debug("Wrote filtered env file", path=str(target), count=len(lines))
        return env_dir


def _check_unique_targets(mounts: list[VolumeMount]) -> None:
    seen: set[str] = set()
    for mount in mounts:
        if mount.container_path in seen:
            raise MountConfigurationError(mount.container_path)
        seen.add(mount.container_path)
