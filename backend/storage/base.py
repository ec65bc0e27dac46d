"""
Session store interface.

Every mutation is a whole-document read-modify-write guarded by the
session's version counter: a write based on a stale version is rejected
and the read-modify-write is retried against the latest document.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from models.schemas import InterviewSession, InterviewSummary
from utils.config import config
from utils.errors import ConcurrentUpdateError, NotFound

logger = logging.getLogger(__name__)

Mutation = Callable[[InterviewSession], None]


class SessionStore(ABC):
    """Durable record of interview sessions."""

    def __init__(self, max_update_attempts: Optional[int] = None):
        self.max_update_attempts = max_update_attempts or config.storage.max_update_attempts

    # ========================================
    # Backend primitives
    # ========================================

    @abstractmethod
    def _insert(self, document: Dict[str, Any]) -> None:
        """Store a new document."""

    @abstractmethod
    def _fetch(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored document or None."""

    @abstractmethod
    def _replace(self, document: Dict[str, Any], expected_version: int) -> bool:
        """Replace the document iff its stored version equals expected_version."""

    @abstractmethod
    def _fetch_owned(self, owner: str) -> List[Dict[str, Any]]:
        """All documents belonging to owner, newest first."""

    # ========================================
    # Public API
    # ========================================

    def create(self, session: InterviewSession) -> str:
        """Persist a new session and return its id."""
        self._insert(session.to_document())
        logger.info(f"Created interview {session.id} for owner {session.owner}")
        return session.id

    def get(self, session_id: str) -> Optional[InterviewSession]:
        """Return the session, or None when the id is unknown."""
        document = self._fetch(session_id)
        if document is None:
            return None
        return InterviewSession.model_validate(document)

    def load(self, session_id: str) -> InterviewSession:
        """Return the session or raise NotFound."""
        session = self.get(session_id)
        if session is None:
            raise NotFound(session_id)
        return session

    def update(self, session_id: str, mutation: Mutation) -> InterviewSession:
        """
        Apply mutation to the latest copy of the session and persist it.

        Exceptions raised by mutation propagate and nothing is written.

        Raises:
            NotFound: unknown id
            ConcurrentUpdateError: every attempt lost a version race
        """
        for attempt in range(1, self.max_update_attempts + 1):
            session = self.load(session_id)
            expected = session.version
            mutation(session)
            session.version = expected + 1
            if self._replace(session.to_document(), expected):
                return session
            logger.warning(
                f"Version conflict on interview {session_id} "
                f"(attempt {attempt}/{self.max_update_attempts})"
            )

        raise ConcurrentUpdateError(
            f"Interview {session_id} was modified concurrently; retry the request"
        )

    def list(self, owner: str) -> List[InterviewSummary]:
        """Summaries of the owner's sessions, newest first."""
        sessions = [InterviewSession.model_validate(d) for d in self._fetch_owned(owner)]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return [InterviewSummary.from_session(s) for s in sessions]
