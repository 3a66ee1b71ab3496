"""Session data access layer."""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from writewise.exceptions import SessionNotFoundError, StaleStateError
from writewise.models.session_state import SessionState

logger = logging.getLogger(__name__)


class SessionRepository(ABC):
    """Storage for lesson sessions with optimistic versioning."""

    @abstractmethod
    def find_active(self, child_id: str, lesson_id: str) -> Optional[SessionState]:
        """
        Most recently updated session for (child, lesson) not yet in feedback.

        Args:
            child_id: Learner identifier
            lesson_id: Lesson identifier

        Returns:
            SessionState if one is in progress, None otherwise
        """

    @abstractmethod
    def create(self, session: SessionState) -> SessionState:
        """Store a brand-new session."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[SessionState]:
        """Retrieve a session by ID."""

    @abstractmethod
    def save(self, session: SessionState, expected_version: int) -> SessionState:
        """
        Replace the stored session if its version still matches.

        Args:
            session: Updated session value
            expected_version: Version the caller loaded

        Returns:
            The stored session, with version bumped by one

        Raises:
            SessionNotFoundError: no such session
            StaleStateError: another write got there first
        """


class InMemorySessionRepository(SessionRepository):
    """Thread-safe in-process store. Sessions are kept as JSON, so callers never share objects."""

    def __init__(self):
        self._rows: dict[str, str] = {}
        self._lock = threading.Lock()

    def _load(self, session_id: str) -> Optional[SessionState]:
        row = self._rows.get(session_id)
        return SessionState.model_validate_json(row) if row else None

    def find_active(self, child_id: str, lesson_id: str) -> Optional[SessionState]:
        with self._lock:
            sessions = [self._load(sid) for sid in self._rows]
        candidates = [
            s for s in sessions
            if s.child_id == child_id and s.lesson_id == lesson_id and s.is_active
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda s: s.updated_at)

    def create(self, session: SessionState) -> SessionState:
        with self._lock:
            if session.session_id in self._rows:
                raise ValueError(f"Session already exists: {session.session_id}")
            self._rows[session.session_id] = session.model_dump_json()
            logger.info(f"Created session {session.session_id} for lesson {session.lesson_id}")
            return self._load(session.session_id)

    def get(self, session_id: str) -> Optional[SessionState]:
        with self._lock:
            return self._load(session_id)

    def save(self, session: SessionState, expected_version: int) -> SessionState:
        with self._lock:
            current = self._load(session.session_id)
            if current is None:
                raise SessionNotFoundError(session.session_id)
            if current.version != expected_version:
                logger.warning(
                    f"Stale write rejected for session {session.session_id}: "
                    f"expected v{expected_version}, found v{current.version}"
                )
                raise StaleStateError(session.session_id, expected_version, current.version)

            stored = session.model_copy(update={
                "version": expected_version + 1,
                "updated_at": datetime.utcnow(),
            })
            self._rows[session.session_id] = stored.model_dump_json()
            return self._load(session.session_id)
