"""Tests for the container runner, using a Python child in place of a container."""

import json
import time

import pytest

from gigaclaw.execution.container_runner import CappedBuffer, ContainerRunner
from gigaclaw.execution.mount_builder import MountBuilder
from gigaclaw.execution.mount_security import MountSecurityValidator
from gigaclaw.execution.types import ContainerInput, ContainerOutput
from gigaclaw.groups.types import ContainerConfig, MountAllowlist
from gigaclaw.infrastructure.config import TimeoutConfig


@pytest.fixture
def make_runner(paths, tmp_path, script_runtime):
    def _make(script: str, timeout_ms: int = 10_000, max_output_size: int = 1_000_000) -> ContainerRunner:
        project = tmp_path / "project"
        project.mkdir(exist_ok=True)
        return ContainerRunner(
            runtime=script_runtime(script),
            mount_builder=MountBuilder(
                validator=MountSecurityValidator(MountAllowlist()),
                paths=paths,
                project_root=project,
            ),
            timeout_config=TimeoutConfig(timeout_ms),
            paths=paths,
            max_output_size=max_output_size,
        )

    return _make


class MissingBinaryRuntime:
    def __init__(self, bin: str) -> None:
        self.bin = bin

    def build_args(self, mounts, image, uid, gid):
        return []

    def ensure_running(self) -> None:
        pass


def _input(prompt: str = "hello", folder: str = "family", session_id: str | None = None) -> ContainerInput:
    return ContainerInput(
        prompt=prompt,
        session_id=session_id,
        group_folder=folder,
        chat_jid="chat-1",
        is_main=False,
    )


class TestCappedBuffer:
    def test_keeps_prefix_and_drops_rest(self):
        buf = CappedBuffer(10)
        buf.feed(b"12345")
        buf.feed(b"67890abc")
        buf.feed(b"def")
        assert buf.text() == "1234567890"
        assert len(buf) == 10
        assert buf.truncated is True
        assert buf.dropped == 6

    def test_exact_fit_is_not_truncated(self):
        buf = CappedBuffer(4)
        buf.feed(b"abcd")
        assert buf.truncated is False
        assert buf.text() == "abcd"


class TestContainerRunner:
    @pytest.mark.asyncio
    async def test_success_through_markers(self, make_runner, group_factory, echo_child):
        runner = make_runner(echo_child)
        output = await runner.run(group_factory(), _input("hi there"))
        assert output.status == "success"
        assert output.result == "echo:hi there"
        assert output.new_session_id == "sess-family"

    @pytest.mark.asyncio
    async def test_child_receives_full_input(self, make_runner, group_factory):
        script = """
        import json, sys
        data = json.load(sys.stdin)
        print(json.dumps({"status": "success", "result": json.dumps(data, sort_keys=True)}))
        """
        runner = make_runner(script)
        output = await runner.run(group_factory(), _input("p", session_id="sess-9"))
        assert json.loads(output.result) == {
            "chatJid": "chat-1",
            "groupFolder": "family",
            "isMain": False,
            "isScheduledTask": False,
            "prompt": "p",
            "sessionId": "sess-9",
        }

    @pytest.mark.asyncio
    async def test_round_trip_reproduces_output(self, make_runner, group_factory):
        expected = ContainerOutput(status="success", result="derived", new_session_id="s-2", error=None)
        script = f"""
        import sys
        sys.stdin.read()
        print("---GIGACLAW_OUTPUT_START---")
        print({expected.model_dump_json(by_alias=True)!r})
        print("---GIGACLAW_OUTPUT_END---")
        """
        output = await make_runner(script).run(group_factory(), _input())
        assert output == expected

    @pytest.mark.asyncio
    async def test_last_line_fallback(self, make_runner, group_factory):
        script = """
        print("noise")
        print('{"status":"error","result":null,"error":"x"}')
        """
        output = await make_runner(script).run(group_factory(), _input())
        assert output.status == "error"
        assert output.error == "x"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, make_runner, group_factory):
        script = """
        import sys
        print("something broke", file=sys.stderr)
        sys.exit(3)
        """
        output = await make_runner(script).run(group_factory(), _input())
        assert output.status == "error"
        assert output.result is None
        assert output.error.startswith("Container exited with code 3")
        assert "something broke" in output.error

    @pytest.mark.asyncio
    async def test_non_zero_exit_error_keeps_only_stderr_tail(self, make_runner, group_factory):
        script = """
        import sys
        sys.stderr.write("x" * 5000)
        sys.stderr.write("disk quota exceeded")
        sys.exit(1)
        """
        output = await make_runner(script).run(group_factory(), _input())
        assert output.error.endswith("disk quota exceeded")
        assert len(output.error) < 600

    @pytest.mark.asyncio
    async def test_non_zero_exit_without_stderr(self, make_runner, group_factory):
        output = await make_runner("import sys; sys.exit(2)").run(group_factory(), _input())
        assert output.error == "Container exited with code 2"

    @pytest.mark.asyncio
    async def test_result_without_status_is_an_error(self, make_runner, group_factory):
        output = await make_runner("print('{}')").run(group_factory(), _input())
        assert output.status == "error"
        assert output.error == "Failed to parse container output"

    @pytest.mark.asyncio
    async def test_unparseable_output(self, make_runner, group_factory):
        output = await make_runner("print('no result here')").run(group_factory(), _input())
        assert output.status == "error"
        assert output.error == "Failed to parse container output"

    @pytest.mark.asyncio
    async def test_timeout_kills_child(self, make_runner, group_factory):
        runner = make_runner("import time; time.sleep(30)", timeout_ms=300)
        started = time.monotonic()
        output = await runner.run(group_factory(), _input())
        elapsed = time.monotonic() - started
        assert output.status == "error"
        assert "timed out" in output.error
        assert elapsed < 0.3 + 5.0

    @pytest.mark.asyncio
    async def test_group_timeout_override(self, make_runner, group_factory):
        runner = make_runner("import time; time.sleep(30)", timeout_ms=60_000)
        group = group_factory(container_config=ContainerConfig(timeout=200))
        started = time.monotonic()
        output = await runner.run(group, _input())
        assert "timed out" in output.error
        assert time.monotonic() - started < 10

    @pytest.mark.asyncio
    async def test_spawn_failure(self, paths, tmp_path, group_factory):
        runner = ContainerRunner(
            runtime=MissingBinaryRuntime(str(tmp_path / "no-such-binary")),
            mount_builder=MountBuilder(validator=MountSecurityValidator(MountAllowlist()), paths=paths, project_root=tmp_path),
            paths=paths,
        )
        output = await runner.run(group_factory(), _input())
        assert output.status == "error"
        assert "spawn" in output.error

    @pytest.mark.asyncio
    async def test_output_over_cap_is_truncated_but_parseable(self, make_runner, group_factory):
        script = """
        import sys
        print("---GIGACLAW_OUTPUT_START---")
        print('{"status":"success","result":"early"}')
        print("---GIGACLAW_OUTPUT_END---")
        sys.stdout.flush()
        sys.stdout.write("x" * 500_000)
        """
        output = await make_runner(script, max_output_size=4096).run(group_factory(), _input())
        assert output.status == "success"
        assert output.result == "early"

    @pytest.mark.asyncio
    async def test_large_stderr_is_drained(self, make_runner, group_factory):
        script = """
        import sys
        sys.stderr.write("e" * 1_000_000)
        sys.stderr.flush()
        print('{"status":"success","result":"done"}')
        """
        output = await make_runner(script, max_output_size=1024).run(group_factory(), _input())
        assert output.result == "done"

    @pytest.mark.asyncio
    async def test_writes_run_log(self, make_runner, group_factory, paths, echo_child):
        await make_runner(echo_child).run(group_factory(), _input())
        logs = list(paths.logs_dir("family").glob("container-*.log"))
        assert len(logs) == 1
        content = logs[0].read_text()
        assert "Group: Family" in content
        assert "Exit Code: 0" in content
        assert "-> /workspace/group" in content

    @pytest.mark.asyncio
    async def test_creates_group_and_logs_dirs(self, make_runner, group_factory, paths, echo_child):
        await make_runner(echo_child).run(group_factory("newcomer"), _input(folder="newcomer"))
        assert paths.group_dir("newcomer").is_dir()
        assert paths.logs_dir("newcomer").is_dir()
