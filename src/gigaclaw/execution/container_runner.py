"""ContainerRunner: spawns agent containers via async subprocess."""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from gigaclaw.execution.container_runtime import ContainerRuntime, resolve_runtime
from gigaclaw.execution.errors import ContainerError, ContainerTimeout, NonZeroExit, ProtocolParseFailure, SpawnFailure
from gigaclaw.execution.mount_builder import MountBuilder
from gigaclaw.execution.output_parser import ContainerOutputParser
from gigaclaw.execution.types import ContainerInput, ContainerOutput, VolumeMount
from gigaclaw.groups.paths import GroupPaths
from gigaclaw.groups.types import RegisteredGroup
from gigaclaw.infrastructure.config import CONTAINER_IMAGE, CONTAINER_MAX_OUTPUT_SIZE, TimeoutConfig
from gigaclaw.infrastructure.logger import logger

READ_CHUNK_SIZE = 64 * 1024
KILL_GRACE_S = 5.0
TAIL_CHARS = 500


class CappedBuffer:
    """Accumulates bytes up to a limit; the rest is counted and dropped."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.truncated = False
        self.dropped = 0
        self._chunks: list[bytes] = []
        self._size = 0

    def feed(self, chunk: bytes) -> None:
        remaining = self.limit - self._size
        if len(chunk) > remaining:
            self.truncated = True
            self.dropped += len(chunk) - remaining
            chunk = chunk[:remaining]
        if chunk:
            self._chunks.append(chunk)
            self._size += len(chunk)

    def __len__(self) -> int:
        return self._size

    def text(self) -> str:
        return b"".join(self._chunks).decode(errors="replace")


@dataclass
class TurnRecord:
    """Diagnostics for one turn, written to the group's logs directory."""

    group: str
    is_main: bool
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    mounts: list[VolumeMount] = field(default_factory=list)
    exit_code: int | None = None
    duration_s: float = 0.0
    status: str = "error"
    error: str | None = None
    stdout_truncated: bool = False
    stderr_truncated: bool = False
    stdout_tail: str = ""
    stderr_tail: str = ""

    def render(self) -> str:
        lines = [
            "=== Container Run Log ===",
            f"Timestamp: {self.started_at}",
            f"Group: {self.group}",
            f"IsMain: {self.is_main}",
            f"Duration: {self.duration_s:.3f}s",
            f"Exit Code: {self.exit_code}",
            f"Status: {self.status}",
        ]
        if self.error:
            lines.append(f"Error: {self.error}")
        lines.append(f"Stdout Truncated: {self.stdout_truncated}")
        lines.append(f"Stderr Truncated: {self.stderr_truncated}")
        lines.append("")
        lines.append("=== Mounts ===")
        lines.extend(
            f"{m.host_path} -> {m.container_path}{' (ro)' if m.readonly else ''}" for m in self.mounts
        )
        lines.extend(["", "=== Stderr (tail) ===", self.stderr_tail, "", "=== Stdout (tail) ===", self.stdout_tail])
        return "\n".join(lines) + "\n"


class ContainerRunner:
    """Runs one agent turn in a container and returns its structured output."""

    def __init__(
        self,
        runtime: ContainerRuntime | None = None,
        mount_builder: MountBuilder | None = None,
        timeout_config: TimeoutConfig | None = None,
        paths: GroupPaths | None = None,
        image: str = CONTAINER_IMAGE,
        max_output_size: int = CONTAINER_MAX_OUTPUT_SIZE,
        parser: ContainerOutputParser | None = None,
    ) -> None:
        self._runtime = runtime or resolve_runtime()
        self._paths = paths or GroupPaths()
        self._mount_builder = mount_builder or MountBuilder(paths=self._paths)
        self._timeout = timeout_config or TimeoutConfig()
        self._image = image
        self._max_output_size = max_output_size
        self._parser = parser or ContainerOutputParser()

    async def run(self, group: RegisteredGroup, input_data: ContainerInput) -> ContainerOutput:
        """Run a container turn. Never raises; failures come back as status="error"."""
        record = TurnRecord(group=group.name, is_main=input_data.is_main)
        started = time.monotonic()
        try:
            output = await self._run(group, input_data, record)
        except ContainerError as err:
            logger.error("Container turn failed", group=group.name, kind=type(err).__name__, error=str(err))
            output = ContainerOutput.failure(str(err))
        except Exception as err:
            logger.exception("Unexpected container runner error", group=group.name)
            output = ContainerOutput.failure(f"Container runner error: {err}")

        record.duration_s = time.monotonic() - started
        record.status = output.status
        record.error = output.error
        self._write_run_log(group.folder, record)
        return output

    async def _run(self, group: RegisteredGroup, input_data: ContainerInput, record: TurnRecord) -> ContainerOutput:
        self._paths.group_dir(group.folder).mkdir(parents=True, exist_ok=True)
        self._paths.logs_dir(group.folder).mkdir(parents=True, exist_ok=True)

        mounts = self._mount_builder.build(group, input_data.is_main)
        record.mounts = mounts
        uid = getattr(os, "getuid", lambda: 1000)()
        gid = getattr(os, "getgid", lambda: 1000)()
        args = self._runtime.build_args(mounts, self._image, uid, gid)
        timeout_s = self._timeout.for_group(group).get_timeout_s()

        logger.info(
            "Spawning container agent",
            group=group.name,
            mount_count=len(mounts),
            is_main=input_data.is_main,
            timeout_s=timeout_s,
        )

        try:
            proc = await asyncio.create_subprocess_exec(
                self._runtime.bin, *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as err:
            logger.error("Container spawn error", group=group.name, bin=self._runtime.bin, error=str(err))
            raise SpawnFailure(self._runtime.bin, err) from err

        stdout = CappedBuffer(self._max_output_size)
        stderr = CappedBuffer(self._max_output_size)

        def log_stderr(chunk: bytes) -> None:
            text = chunk.decode(errors="replace").strip()
            if text:
                logger.debug("Container stderr", group=group.name, chunk=text)

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _write_input(proc, input_data.to_json().encode()),
                    _drain(proc.stdout, stdout),
                    _drain(proc.stderr, stderr, log_stderr),
                    proc.wait(),
                ),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            logger.error("Container timeout, killing", group=group.name, timeout_s=timeout_s)
            await _kill(proc)
            raise ContainerTimeout(timeout_s) from None
        except asyncio.CancelledError:
            await _kill(proc)
            raise
        finally:
            record.exit_code = proc.returncode
            record.stdout_truncated = stdout.truncated
            record.stderr_truncated = stderr.truncated
            record.stdout_tail = stdout.text()[-TAIL_CHARS:]
            record.stderr_tail = stderr.text()[-TAIL_CHARS:]

        if stdout.truncated or stderr.truncated:
            logger.warning(
                "Container output truncated",
                group=group.name,
                limit=self._max_output_size,
                stdout_dropped=stdout.dropped,
                stderr_dropped=stderr.dropped,
            )

        code = proc.returncode
        if code != 0:
            tail = stderr.text()[-TAIL_CHARS:]
            logger.error("Container exited with error", group=group.name, code=code, stderr=tail)
            raise NonZeroExit(code, tail)

        raw = stdout.text()
        try:
            output = self._parser.parse(raw)
        except ProtocolParseFailure as err:
            logger.error("Failed to parse container output", group=group.name, stdout=raw[-TAIL_CHARS:], error=err.detail)
            raise

        logger.info("Container completed", group=group.name, status=output.status)
        return output

    def _write_run_log(self, folder: str, record: TurnRecord) -> None:
        stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
        log_file = self._paths.logs_dir(folder) / f"container-{stamp}.log"
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(record.render())
        except OSError as err:
            logger.warning("Failed to write container run log", path=str(log_file), error=str(err))


async def _write_input(proc: asyncio.subprocess.Process, data: bytes) -> None:
    """Write the whole input document, then close stdin for good."""
    assert proc.stdin is not None
    try:
        proc.stdin.write(data)
        await proc.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        logger.debug("Container closed stdin before reading input")
    finally:
        proc.stdin.close()


async def _drain(
    stream: asyncio.StreamReader | None,
    buffer: CappedBuffer,
    on_chunk: Callable[[bytes], None] | None = None,
) -> None:
    # Keep reading past the cap so the child never blocks on a full pipe
    assert stream is not None
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            return
        buffer.feed(chunk)
        if on_chunk:
            on_chunk(chunk)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=KILL_GRACE_S)
    except asyncio.TimeoutError:
        logger.warning("Killed container did not exit in time", pid=proc.pid)
