"""Container runtime strategy: Protocol plus Docker and Apple Container implementations."""

from __future__ import annotations

import shutil
import subprocess
import sys
from typing import Protocol

from gigaclaw.execution.mount_builder import HOME_MOUNT
from gigaclaw.execution.types import VolumeMount
from gigaclaw.infrastructure.logger import logger


class ContainerRuntime(Protocol):
    """Interface for container runtimes (Docker, Apple Container, ...)."""

    @property
    def bin(self) -> str:
        """Path to the runtime binary (e.g. 'docker')."""
        ...

    def build_args(self, mounts: list[VolumeMount], image: str, uid: int, gid: int) -> list[str]:
        """Arguments following the binary for one interactive, ephemeral run."""
        ...

    def ensure_running(self) -> None:
        """Raise RuntimeError if the runtime cannot run containers."""
        ...


def mount_args(mount: VolumeMount) -> list[str]:
    if mount.readonly:
        return ["--mount", f"type=bind,source={mount.host_path},target={mount.container_path},readonly"]
    return ["-v", f"{mount.host_path}:{mount.container_path}"]


class _CliRuntime:
    """Shared argument shape of the docker-compatible CLIs."""

    name = "docker"

    def __init__(self) -> None:
        self._bin = shutil.which(self.name) or self.name

    @property
    def bin(self) -> str:
        return self._bin

    def build_args(self, mounts: list[VolumeMount], image: str, uid: int, gid: int) -> list[str]:
        args = ["run", "-i", "--rm", "--user", f"{uid}:{gid}", "-e", f"HOME={HOME_MOUNT}"]
        for mount in mounts:
            args.extend(mount_args(mount))
        args.append(image)
        return args

    def _check(self, *args: str, timeout: float = 10) -> bool:
        try:
            subprocess.run([self._bin, *args], check=True, capture_output=True, timeout=timeout)
            return True
        except (OSError, subprocess.CalledProcessError, subprocess.TimeoutExpired):
            return False


class DockerRuntime(_CliRuntime):
    """Docker container runtime."""

    name = "docker"

    def ensure_running(self) -> None:
        if not self._check("--version"):
            raise RuntimeError("Docker is required but not found")


class AppleContainerRuntime(_CliRuntime):
    """Apple Container runtime (macOS)."""

    name = "container"

    def ensure_running(self) -> None:
        if self._check("system", "status"):
            return
        if not self._check("system", "start", timeout=30):
            logger.critical("Apple Container system failed to start")
            raise RuntimeError("Apple Container system is required but failed to start")
        logger.info("Apple Container system started")


def resolve_runtime(platform: str = sys.platform) -> ContainerRuntime:
    """Pick the runtime for the host OS. Resolved once at startup."""
    if platform == "darwin":
        return AppleContainerRuntime()
    return DockerRuntime()
