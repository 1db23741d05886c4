import threading
import time
from typing import Callable, Dict, Optional, Tuple

from dayplanner.core.config import logger
from dayplanner.core.errors import SessionNotFound
from dayplanner.schemas.itinerary import PendingRequest

class IntakeStore:
    """
    In-process store of pending requests keyed by checkout session id.

    `take` is atomic: for a given session id at most one caller ever receives the request,
    which is what makes redelivered payment notifications harmless.
    Entries older than `ttl_seconds` are treated as absent (0 or None disables expiry).
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[float, PendingRequest]] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds or None
        self._clock = clock

    def put(self, session_id: str, request: PendingRequest) -> None:
        with self._lock:
            self._purge_locked()
            self._entries[session_id] = (self._clock(), request)
        logger.info(f"[INTAKE] Stored pending request for session {session_id}")

    def take(self, session_id: str) -> PendingRequest:
        with self._lock:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            raise SessionNotFound(session_id)
        created_at, request = entry
        if self._is_expired(created_at):
            logger.warning(f"[INTAKE] Pending request for session {session_id} expired before payment was confirmed")
            raise SessionNotFound(session_id)
        return request

    def purge_expired(self) -> int:
        """Evicts expired entries and returns how many were dropped."""
        with self._lock:
            return self._purge_locked()

    def _purge_locked(self) -> int:
        if self._ttl is None:
            return 0
        expired = [sid for sid, (created_at, _) in self._entries.items() if self._is_expired(created_at)]
        for sid in expired:
            del self._entries[sid]
        if expired:
            logger.info(f"[INTAKE] Evicted {len(expired)} abandoned pending request(s)")
        return len(expired)

    def _is_expired(self, created_at: float) -> bool:
        return self._ttl is not None and self._clock() - created_at > self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._entries
