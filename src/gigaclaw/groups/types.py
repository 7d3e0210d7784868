"""Group domain types."""

from __future__ import annotations

from pydantic import BaseModel

from gigaclaw.infrastructure.config import MAIN_GROUP_FOLDER


class AdditionalMount(BaseModel):
    host_path: str  # Absolute path on host (supports ~ for home)
    container_path: str | None = None  # Relative to /workspace/extra; defaults to basename of host_path
    readonly: bool = True


class AllowedRoot(BaseModel):
    path: str  # Absolute path or ~ for home
    allow_read_write: bool = False
    main_only: bool = False  # Reserved for the main group
    description: str | None = None


class MountAllowlist(BaseModel):
    allowed_roots: list[AllowedRoot] = []
    blocked_patterns: list[str] = []
    non_main_read_only: bool = True


class ContainerConfig(BaseModel):
    additional_mounts: list[AdditionalMount] | None = None
    timeout: int | None = None  # ms; falls back to CONTAINER_TIMEOUT


class RegisteredGroup(BaseModel):
    name: str
    folder: str
    added_at: str
    trigger: str | None = None  # Regex; falls back to the assistant trigger
    container_config: ContainerConfig | None = None

    @property
    def is_main(self) -> bool:
        return self.folder == MAIN_GROUP_FOLDER
