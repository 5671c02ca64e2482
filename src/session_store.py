"""In-memory keyed store for upload sessions."""

import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from errors import NothingToExportError, SessionNotFoundError
from logging_setup import get_logger
from models import Dataset, DatasetProfile, ReconOutcome

logger = get_logger("recon.session_store")


@dataclass
class ReconSession:
    """Datasets parsed at upload time plus the last reconciliation outcome."""
    session_id: str
    dataset_a: Dataset
    dataset_b: Dataset
    meta: Dict[str, DatasetProfile]
    created_at: float = field(default_factory=time.time)
    last_outcome: Optional[ReconOutcome] = None

    def meta_dict(self) -> Dict[str, dict]:
        return {side: profile.to_dict() for side, profile in self.meta.items()}


class SessionStore:
    """
    Sessions keyed by an opaque id.

    A request only touches the session named by its id; the lock guards the
    map itself.
    """

    def __init__(self, ttl_seconds: Optional[float] = 3600):
        self.ttl_seconds = ttl_seconds
        self._sessions: Dict[str, ReconSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def create(self, dataset_a: Dataset, dataset_b: Dataset, meta: Dict[str, DatasetProfile]) -> ReconSession:
        """Store freshly parsed datasets under a new session id."""
        self.purge_expired()
        with self._lock:
            session_id = secrets.token_hex(6)
            while session_id in self._sessions:
                session_id = secrets.token_hex(6)
            session = ReconSession(session_id=session_id, dataset_a=dataset_a, dataset_b=dataset_b, meta=meta)
            self._sessions[session_id] = session
        logger.info("session created id=%s a=%d b=%d", session_id, len(dataset_a), len(dataset_b))
        return session

    def get(self, session_id: str) -> ReconSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def save_outcome(self, session_id: str, outcome: ReconOutcome) -> ReconSession:
        """Replace the session's last outcome."""
        session = self.get(session_id)
        session.last_outcome = outcome
        return session

    def last_outcome(self, session_id: str) -> ReconOutcome:
        session = self.get(session_id)
        if session.last_outcome is None:
            raise NothingToExportError(session_id)
        return session.last_outcome

    def purge_expired(self, now: Optional[float] = None) -> int:
        """
        Drop sessions older than the TTL.

        Returns:
            Number of sessions removed
        """
        if not self.ttl_seconds:
            return 0
        cutoff = (now if now is not None else time.time()) - self.ttl_seconds
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.created_at < cutoff]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("purged %d expired session(s)", len(expired))
        return len(expired)
