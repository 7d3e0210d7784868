"""Configuration constants, .env parsing, and timeout settings."""

from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import BaseModel, Field


def read_env_file(keys: list[str], env_file: Path | None = None) -> dict[str, str]:
    """Parse .env file and return values for requested keys.

    Does NOT load into os.environ: callers decide what to do with values.
    This keeps secrets out of the process environment so they don't leak
    to child processes.
    """
    env_file = env_file or Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


def _setting(key: str, default: str) -> str:
    return os.environ.get(key) or _env_config.get(key, default)


# Read config values from .env (falls back to os.environ).
_env_config = read_env_file(
    ["ASSISTANT_NAME", "MESSAGE_PREFIX", "CONTAINER_IMAGE", "CONTAINER_TIMEOUT", "CONTAINER_MAX_OUTPUT_SIZE"]
)

ASSISTANT_NAME: str = _setting("ASSISTANT_NAME", "Neo")
MESSAGE_PREFIX: str = _setting("MESSAGE_PREFIX", "")

# Absolute paths
PROJECT_ROOT: Path = Path.cwd()
HOME_DIR: Path = Path.home()

MOUNT_ALLOWLIST_PATH: Path = HOME_DIR / ".config" / "gigaclaw" / "mount-allowlist.json"
STORE_DIR: Path = (PROJECT_ROOT / "store").resolve()
GROUPS_DIR: Path = (PROJECT_ROOT / "groups").resolve()
DATA_DIR: Path = (PROJECT_ROOT / "data").resolve()
MAIN_GROUP_FOLDER: str = "main"
GLOBAL_GROUP_FOLDER: str = "global"


class ContainerLimits(BaseModel):
    """Upper bounds for a single container turn."""

    timeout: int = Field(gt=0, le=3_600_000)  # ms, at most 1 hour
    max_output_size: int = Field(gt=0, le=104_857_600)  # bytes, at most 100MB


_limits = ContainerLimits(
    timeout=int(_setting("CONTAINER_TIMEOUT", "300000")),
    max_output_size=int(_setting("CONTAINER_MAX_OUTPUT_SIZE", "10485760")),
)

CONTAINER_IMAGE: str = _setting("CONTAINER_IMAGE", "gigaclaw-agent:latest")
CONTAINER_TIMEOUT: int = _limits.timeout
CONTAINER_MAX_OUTPUT_SIZE: int = _limits.max_output_size
MAX_CONCURRENT_CONTAINERS: int = max(1, int(os.environ.get("MAX_CONCURRENT_CONTAINERS", "5")))

# Only these variables from the host .env ever reach a container.
ALLOWED_ENV_VARS: tuple[str, ...] = (
    "CLAUDE_CODE_OAUTH_TOKEN",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_BASE_URL",
    "ANTHROPIC_AUTH_TOKEN",
    "TZ",
)


def _escape_regex(s: str) -> str:
    return re.escape(s)


TRIGGER_PATTERN: re.Pattern[str] = re.compile(rf"^@{_escape_regex(ASSISTANT_NAME)}\b", re.IGNORECASE)


class TimeoutConfig:
    """Timeout configuration for container execution."""

    def __init__(self, container_timeout: int = CONTAINER_TIMEOUT) -> None:
        self.container_timeout = container_timeout

    def get_timeout_s(self) -> float:
        return self.container_timeout / 1000

    def for_group(self, group: object) -> TimeoutConfig:
        """Create a TimeoutConfig for a specific group, using group's custom timeout if set."""
        container_config = getattr(group, "container_config", None)
        if container_config and container_config.timeout:
            return TimeoutConfig(container_config.timeout)
        return TimeoutConfig(self.container_timeout)
