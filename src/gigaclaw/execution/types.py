"""Execution domain types: mounts, container input, container output."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class VolumeMount:
    host_path: str
    container_path: str
    readonly: bool = False


@dataclass(frozen=True)
class ContainerInput:
    prompt: str
    session_id: str | None
    group_folder: str
    chat_jid: str
    is_main: bool
    is_scheduled_task: bool = False

    def to_json(self) -> str:
        """Serialize to the JSON document written to the child's stdin."""
        return json.dumps({
            "prompt": self.prompt,
            "sessionId": self.session_id,
            "groupFolder": self.group_folder,
            "chatJid": self.chat_jid,
            "isMain": self.is_main,
            "isScheduledTask": self.is_scheduled_task,
        })


class ContainerOutput(BaseModel):
    """Result of one turn, as reported by the child or synthesized on failure."""

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["success", "error"]
    result: str | None = None
    new_session_id: str | None = Field(default=None, alias="newSessionId")
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> ContainerOutput:
        return cls(status="error", result=None, error=error)
