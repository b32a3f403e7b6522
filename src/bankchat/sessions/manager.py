"""SessionManager for persistence and CRUD operations on chat sessions.

This module provides the SessionManager class which handles:
- Creating new sessions
- Saving sessions after every change and enforcing the retention limit
- Listing sessions sorted by last update
- Retrieving and deleting sessions
"""

import asyncio
import logging
from pathlib import Path

from bankchat.sessions.session import ChatSession
from bankchat.sessions.types import Message, SessionCreationOptions, SystemMessage

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages chat sessions stored as JSON files in one directory.

    When more than ``max_sessions`` sessions exist after a new session file is
    written, the least recently updated ones are deleted.
    """

    def __init__(
        self,
        sessions_dir: Path,
        max_sessions: int | None = None,
        auto_save: bool = True,
    ):
        """Initialize the SessionManager.

        Args:
            sessions_dir: Directory where session JSON files are stored
            max_sessions: Retention limit (None keeps everything)
            auto_save: When False, save() is a no-op
        """
        self.sessions_dir = sessions_dir
        self.max_sessions = max_sessions
        self.auto_save = auto_save
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self._turn_locks: dict[str, asyncio.Lock] = {}

    def create_session(self, options: SessionCreationOptions) -> ChatSession:
        """Create and persist a new chat session.

        Args:
            options: Session creation options including model and system prompt

        Returns:
            The newly created ChatSession
        """
        session = ChatSession(
            session_id=ChatSession.generate_session_id(), model=options.model
        )

        if options.system_prompt:
            session.add_message(SystemMessage(content=options.system_prompt))

        self.save(session)

        logger.info(f"Created new session {session.session_id} with model {options.model}")
        return session

    def save(self, session: ChatSession) -> None:
        """Persist a session.

        Writing a new session file also trims old sessions beyond the
        retention limit; rewriting an existing file leaves the count unchanged.
        """
        if not self.auto_save:
            return
        is_new = not (self.sessions_dir / f"{session.session_id}.json").exists()
        session.save(self.sessions_dir)
        if is_new:
            self.enforce_retention(keep=session.session_id)

    def turn_lock(self, session_id: str) -> asyncio.Lock:
        """Lock held while a user turn runs on the session."""
        return self._turn_locks.setdefault(session_id, asyncio.Lock())

    def enforce_retention(self, keep: str | None = None) -> list[str]:
        """Delete the oldest sessions until at most ``max_sessions`` remain.

        Args:
            keep: A session ID that is never deleted (the active one)

        Returns:
            IDs of the deleted sessions
        """
        if self.max_sessions is None:
            return []

        sessions = self.list_sessions()
        excess = len(sessions) - self.max_sessions
        if excess <= 0:
            return []

        deleted: list[str] = []
        # list_sessions() is newest first, so walk from the end
        for session in reversed(sessions):
            if len(deleted) >= excess:
                break
            if session.session_id == keep:
                continue
            self.delete_session(session.session_id)
            deleted.append(session.session_id)

        logger.info(f"Retention limit {self.max_sessions}: removed {len(deleted)} sessions")
        return deleted

    def list_sessions(self) -> list[ChatSession]:
        """List all sessions, sorted by updated_at descending.

        Returns:
            List of ChatSession objects, newest first
        """
        sessions: list[ChatSession] = []

        for file_path in self.sessions_dir.glob("*.json"):
            session_id = file_path.stem
            try:
                sessions.append(ChatSession.load(session_id, self.sessions_dir))
            except Exception as e:
                logger.warning(f"Failed to load session {session_id}: {e}")
                continue

        sessions.sort(key=lambda s: s.metadata.updated_at, reverse=True)

        logger.debug(f"Listed {len(sessions)} sessions")
        return sessions

    def get_session(self, session_id: str) -> ChatSession:
        """Get a specific session by ID.

        Raises:
            FileNotFoundError: If session doesn't exist
        """
        session = ChatSession.load(session_id, self.sessions_dir)
        logger.debug(f"Retrieved session {session_id}")
        return session

    def delete_session(self, session_id: str) -> None:
        """Delete a session.

        Raises:
            FileNotFoundError: If session doesn't exist
        """
        file_path = self.sessions_dir / f"{session_id}.json"

        if not file_path.exists():
            raise FileNotFoundError(f"Session {session_id} not found")

        file_path.unlink()
        self._turn_locks.pop(session_id, None)
        logger.info(f"Deleted session {session_id}")

    def get_messages(self, session_id: str) -> list[Message]:
        """Get all messages from a session.

        Raises:
            FileNotFoundError: If session doesn't exist
        """
        return self.get_session(session_id).messages
