"""Failure kinds of a container turn.

Every turn-fatal error is converted to ``ContainerOutput(status="error")`` at
the runner boundary; ``MountRejected`` only ever drops a single mount.
"""

from __future__ import annotations


class ContainerError(Exception):
    """Base class for turn-fatal container failures."""


class SpawnFailure(ContainerError):
    def __init__(self, bin: str, cause: OSError) -> None:
        super().__init__(f"Container spawn error: {cause.strerror or cause}")
        self.bin = bin
        self.cause = cause


class ContainerTimeout(ContainerError):
    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"Container timed out after {timeout_s:g}s")
        self.timeout_s = timeout_s


class NonZeroExit(ContainerError):
    def __init__(self, code: int, stderr_tail: str) -> None:
        message = f"Container exited with code {code}"
        if stderr_tail.strip():
            message = f"{message}: {stderr_tail.strip()}"
        super().__init__(message)
        self.code = code
        self.stderr_tail = stderr_tail


class ProtocolParseFailure(ContainerError):
    def __init__(self, detail: str) -> None:
        super().__init__("Failed to parse container output")
        self.detail = detail


class MountConfigurationError(ContainerError):
    def __init__(self, container_path: str) -> None:
        super().__init__(f"Mount configuration error: duplicate container path {container_path}")
        self.container_path = container_path


class MountRejected(Exception):
    """A requested extra mount failed validation. Never fatal to the turn."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
