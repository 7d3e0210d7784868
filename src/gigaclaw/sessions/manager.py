"""Session manager with in-memory cache over the session repository."""

from __future__ import annotations

from gigaclaw.infrastructure.logger import logger
from gigaclaw.sessions.repository import SessionRepository


class SessionManager:
    """Latest known session handle per group folder.

    Every write goes through set(), which persists before returning, so a
    restart resumes with the same handle. Handles are replaced, never deleted.
    """

    def __init__(self, session_repo: SessionRepository) -> None:
        self._session_repo = session_repo
        self._sessions: dict[str, str] = {}

    def load_from_db(self) -> None:
        """Load all sessions from DB into memory cache."""
        self._sessions = self._session_repo.get_all_sessions()
        logger.info("Sessions loaded", count=len(self._sessions))

    def get(self, group_folder: str) -> str | None:
        return self._sessions.get(group_folder)

    def set(self, group_folder: str, session_id: str) -> None:
        if self._sessions.get(group_folder) == session_id:
            return
        self._session_repo.set_session(group_folder, session_id)
        self._sessions[group_folder] = session_id
        logger.debug("Session updated", group_folder=group_folder, session_id=session_id)

    def get_all(self) -> dict[str, str]:
        return dict(self._sessions)
