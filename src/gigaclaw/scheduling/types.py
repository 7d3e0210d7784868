"""Scheduling domain types."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from gigaclaw.execution.types import ContainerOutput

SUMMARY_CHARS = 200


class ScheduledTask(BaseModel):
    """A prompt a scheduler runs as a turn of its owning group.

    With context_mode "group" the turn resumes the group's session; with
    "isolated" it starts fresh and leaves the session untouched.
    """

    id: str
    group_folder: str
    chat_jid: str
    prompt: str
    schedule_type: Literal["cron", "interval", "once"]
    schedule_value: str
    context_mode: Literal["group", "isolated"] = "isolated"
    next_run: str | None = None
    last_run: str | None = None
    last_result: str | None = None
    status: Literal["active", "paused", "completed"] = "active"
    created_at: str = ""

    @property
    def uses_group_session(self) -> bool:
        return self.context_mode == "group"

    def snapshot(self) -> dict:
        """Projection written to current_tasks.json for the container."""
        return self.model_dump(
            include={"id", "group_folder", "prompt", "schedule_type", "schedule_value", "status", "next_run"}
        )


class TaskRunLog(BaseModel):
    task_id: str
    run_at: str
    duration_ms: int
    status: Literal["success", "error"]
    result: str | None = None
    error: str | None = None

    @classmethod
    def from_output(cls, task_id: str, output: ContainerOutput, duration_ms: int) -> TaskRunLog:
        return cls(
            task_id=task_id,
            run_at=datetime.now().isoformat(),
            duration_ms=duration_ms,
            status=output.status,
            result=output.result,
            error=output.error,
        )

    @property
    def summary(self) -> str:
        """Short outcome stored on the task as last_result."""
        if self.status == "error":
            return f"Error: {self.error}"
        return (self.result or "Completed")[:SUMMARY_CHARS]
