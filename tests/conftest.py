import sys
import textwrap

import pytest

from gigaclaw.execution.types import VolumeMount
from gigaclaw.groups.paths import GroupPaths
from gigaclaw.groups.types import RegisteredGroup
from gigaclaw.infrastructure.database import AppDatabase


@pytest.fixture
def db() -> AppDatabase:
    """Create an in-memory database for testing."""
    app_db = AppDatabase()
    app_db._init_test()
    return app_db


@pytest.fixture
def paths(tmp_path) -> GroupPaths:
    return GroupPaths(groups_dir=tmp_path / "groups", data_dir=tmp_path / "data")


def make_group(folder: str = "family", name: str | None = None, **kwargs) -> RegisteredGroup:
    return RegisteredGroup(name=name or folder.title(), folder=folder, added_at="2024-01-01T00:00:00", **kwargs)


class ScriptRuntime:
    """Runs a Python snippet in place of a container image."""

    def __init__(self, script: str) -> None:
        self.script = textwrap.dedent(script)
        self.mounts: list[VolumeMount] = []
        self.started = False

    @property
    def bin(self) -> str:
        return sys.executable

    def build_args(self, mounts: list[VolumeMount], image: str, uid: int, gid: int) -> list[str]:
        self.mounts = mounts
        return ["-c", self.script]

    def ensure_running(self) -> None:
        self.started = True


ECHO_CHILD = """
import json, sys
data = json.load(sys.stdin)
print("agent booting...")
print("tool noise {not json}", file=sys.stderr)
print("---GIGACLAW_OUTPUT_START---")
print(json.dumps({
    "status": "success",
    "result": "echo:" + data["prompt"],
    "newSessionId": "sess-" + data["groupFolder"],
}))
print("---GIGACLAW_OUTPUT_END---")
print("shutting down")
"""


@pytest.fixture
def group_factory():
    return make_group


@pytest.fixture
def script_runtime():
    return ScriptRuntime


@pytest.fixture
def echo_child() -> str:
    return ECHO_CHILD
