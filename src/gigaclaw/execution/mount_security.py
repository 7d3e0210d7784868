"""Mount allowlist validation for containers."""

from __future__ import annotations

import json
from pathlib import Path, PurePosixPath

from pydantic import ValidationError

from gigaclaw.execution.errors import MountRejected
from gigaclaw.execution.types import VolumeMount
from gigaclaw.groups.types import AdditionalMount, AllowedRoot, MountAllowlist
from gigaclaw.infrastructure.config import MOUNT_ALLOWLIST_PATH
from gigaclaw.infrastructure.logger import logger

EXTRA_MOUNT_ROOT = "/workspace/extra"

# Always blocked, in addition to the allowlist's own patterns.
DEFAULT_BLOCKED_PATTERNS = [
    ".ssh",
    ".gnupg",
    ".gpg",
    ".aws",
    ".azure",
    ".gcloud",
    ".kube",
    ".docker",
    "credentials",
    ".env",
    ".netrc",
    ".npmrc",
    ".pypirc",
    "id_rsa",
    "id_ed25519",
    "private_key",
    ".secret",
]


def load_mount_allowlist(path: Path = MOUNT_ALLOWLIST_PATH) -> MountAllowlist:
    """Load mount allowlist from config file.

    A missing or unreadable file yields an empty allowlist, which rejects
    every extra mount.
    """
    if not path.exists():
        logger.info("No mount allowlist, extra mounts disabled", path=str(path))
        return MountAllowlist()
    try:
        return MountAllowlist(**json.loads(path.read_text()))
    except (OSError, json.JSONDecodeError, TypeError, ValidationError) as err:
        logger.warning("Failed to load mount allowlist, extra mounts disabled", path=str(path), error=str(err))
        return MountAllowlist()


def _expand_home(p: str) -> Path:
    return Path(p).expanduser()


def _matches_blocked(resolved: Path, patterns: list[str]) -> str | None:
    for pattern in patterns:
        expanded = _expand_home(pattern)
        if expanded.is_absolute():
            if resolved == expanded or resolved.is_relative_to(expanded):
                return pattern
        elif any(pattern in part for part in resolved.parts):
            return pattern
    return None


def _container_target(mount: AdditionalMount, resolved: Path) -> str:
    name = mount.container_path or resolved.name
    rel = PurePosixPath(name)
    if rel.is_absolute() or ".." in rel.parts or not rel.parts or name.strip() in ("", "."):
        raise MountRejected(f"invalid container path {name!r}")
    return str(PurePosixPath(EXTRA_MOUNT_ROOT) / rel)


class MountSecurityValidator:
    """Filters a group's requested extra mounts against the host allowlist."""

    def __init__(self, allowlist: MountAllowlist | None = None) -> None:
        self._allowlist = allowlist if allowlist is not None else load_mount_allowlist()

    @property
    def allowlist(self) -> MountAllowlist:
        return self._allowlist

    def validate(self, requested: list[AdditionalMount], group_name: str, is_main: bool) -> list[VolumeMount]:
        """Return the accepted mounts. Rejected ones are logged and dropped."""
        accepted: list[VolumeMount] = []
        for mount in requested:
            try:
                accepted.append(self.check(mount, is_main))
            except MountRejected as err:
                logger.warning(
                    "Additional mount rejected",
                    group=group_name,
                    host_path=mount.host_path,
                    reason=err.reason,
                )
        return accepted

    def check(self, mount: AdditionalMount, is_main: bool) -> VolumeMount:
        """Validate a single mount, raising MountRejected with the reason."""
        # resolve() collapses ".." and symlinks, so containment is checked on the real path
        resolved = _expand_home(mount.host_path).resolve()
        if not resolved.exists():
            raise MountRejected(f"host path does not exist: {resolved}")

        blocked = _matches_blocked(resolved, DEFAULT_BLOCKED_PATTERNS + self._allowlist.blocked_patterns)
        if blocked:
            raise MountRejected(f"matches blocked pattern {blocked!r}")

        root = self._find_root(resolved)
        if root is None:
            raise MountRejected("not under any allowed root")
        if root.main_only and not is_main:
            raise MountRejected(f"root {root.path} is reserved for the main group")

        read_only = mount.readonly or not root.allow_read_write
        if not is_main and self._allowlist.non_main_read_only:
            read_only = True

        return VolumeMount(
            host_path=str(resolved),
            container_path=_container_target(mount, resolved),
            readonly=read_only,
        )

    def _find_root(self, resolved: Path) -> AllowedRoot | None:
        for root in self._allowlist.allowed_roots:
            root_path = _expand_home(root.path).resolve()
            if resolved == root_path or resolved.is_relative_to(root_path):
                return root
        return None
