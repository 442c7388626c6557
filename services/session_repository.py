"""Session repository - where in-flight training sessions live between requests"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from services.session_queue import ActiveSession

logger = logging.getLogger(__name__)

SessionKey = Tuple[int, str]


class SessionRepository(ABC):
    """Storage for active sessions keyed by (user_id, session_id)"""

    @abstractmethod
    def get(self, user_id: int, session_id: str) -> Optional[ActiveSession]:
        pass

    @abstractmethod
    def put(self, session: ActiveSession) -> None:
        pass

    @abstractmethod
    def delete(self, user_id: int, session_id: str) -> bool:
        pass

    @abstractmethod
    def all(self) -> List[ActiveSession]:
        pass


class InMemorySessionRepository(SessionRepository):
    """Process-local repository; a restart loses every in-flight session"""

    def __init__(self):
        self._sessions: Dict[SessionKey, ActiveSession] = {}
        self._lock = threading.Lock()

    def get(self, user_id: int, session_id: str) -> Optional[ActiveSession]:
        with self._lock:
            return self._sessions.get((user_id, str(session_id)))

    def put(self, session: ActiveSession) -> None:
        with self._lock:
            self._sessions[(session.user_id, session.session_id)] = session
        logger.debug(f"Stored active session {session.session_id} for user_id={session.user_id}")

    def delete(self, user_id: int, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop((user_id, str(session_id)), None) is not None

    def all(self) -> List[ActiveSession]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
