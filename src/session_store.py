"""
In-memory session storage for the renewal dialog.

Holds, per session id, the RenewalState and the id of the prompt the
dialog is suspended on (if any). Sessions expire after a TTL and the
oldest are evicted once the store is full.

Precondition: the caller serializes turns per session. The store locks
its own bookkeeping, but two concurrent turns for the same session would
race on the dialog's read-modify-write of the state.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, replace

from src.conversation_state import RenewalState

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    ts: float
    state: RenewalState | None = None
    awaiting: str | None = None


class SessionStore:
    def __init__(self, max_sessions: int = 1000, ttl_seconds: int = 1800):
        self.max_sessions = max_sessions
        self.ttl_seconds = ttl_seconds
        self._sessions: OrderedDict[str, SessionRecord] = OrderedDict()
        self._lock = threading.Lock()

    def _touch(self, session_id: str) -> SessionRecord:
        """Fetch or create the record and mark it most recently used."""
        now = time.time()
        record = self._sessions.get(session_id)
        if record is None:
            record = SessionRecord(ts=now)
            self._sessions[session_id] = record
        record.ts = now
        self._sessions.move_to_end(session_id)
        return record

    def prune(self) -> None:
        """Drop expired sessions, then the oldest ones over capacity."""
        now = time.time()
        with self._lock:
            expired = [
                sid for sid, record in self._sessions.items() if now - record.ts > self.ttl_seconds
            ]
            for sid in expired:
                del self._sessions[sid]

            while len(self._sessions) > self.max_sessions:
                oldest_sid, _ = self._sessions.popitem(last=False)
                logger.info(f"Evicted session {oldest_sid} (store full)")

        if expired:
            logger.info(f"Expired {len(expired)} idle session(s)")

    def load_state(self, session_id: str) -> RenewalState | None:
        """Return a copy of the stored state, or None when never saved."""
        with self._lock:
            record = self._touch(session_id)
            return replace(record.state) if record.state is not None else None

    def save_state(self, session_id: str, state: RenewalState) -> None:
        with self._lock:
            self._touch(session_id).state = replace(state)

    def get_awaiting(self, session_id: str) -> str | None:
        with self._lock:
            record = self._sessions.get(session_id)
            return record.awaiting if record else None

    def set_awaiting(self, session_id: str, prompt_id: str | None) -> None:
        with self._lock:
            self._touch(session_id).awaiting = prompt_id

    def reset(self, session_id: str) -> bool:
        """Forget everything about a session. Returns False if it was unknown."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
