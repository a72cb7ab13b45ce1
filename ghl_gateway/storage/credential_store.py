"""
Credential store: verified upstream credentials keyed by session id.

The store is the only shared mutable state of the gateway. Every operation
is atomic with respect to concurrent put/get/sweep calls; no caller holds a
lock across more than one operation.
"""

from __future__ import annotations

import abc
import asyncio
import time
from typing import Callable, Dict, List, Optional

from ghl_gateway.models import Credentials, Session

Clock = Callable[[], float]


class SessionNotFound(KeyError):
    """
    Raised when a session id has no live entry (never stored, or evicted).
    """

    def __init__(self, session_id: Optional[str]) -> None:
        self.session_id = session_id
        super().__init__(session_id)


def is_expired(last_used: float, now: float, ttl_seconds: float) -> bool:
    """
    Entries exactly `ttl_seconds` old are still alive; eviction starts strictly
    after the boundary.
    """
    return now - last_used > ttl_seconds


class CredentialStore(abc.ABC):
    """
    Storage interface for sessions, so the backend can be swapped without
    touching the session manager or the dispatcher.
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock: Clock = clock or time.time

    def now(self) -> float:
        return self._clock()

    @abc.abstractmethod
    async def put(self, session_id: str, credentials: Credentials) -> Session:
        """Insert or replace the session, stamping created_at/last_used to now."""

    @abc.abstractmethod
    async def get(self, session_id: str) -> Session:
        """Return the session and refresh last_used, or raise SessionNotFound."""

    @abc.abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove a session; returns True if it existed."""

    @abc.abstractmethod
    async def sweep(
        self, now: Optional[float] = None, ttl: Optional[float] = None
    ) -> List[str]:
        """Remove every expired session and return the removed ids."""

    @abc.abstractmethod
    async def count(self) -> int:
        """Number of stored sessions."""

    async def close(self) -> None:
        return None


class InMemoryCredentialStore(CredentialStore):
    """
    Process-local store backed by a dict and guarded by an asyncio.Lock.
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None) -> None:
        super().__init__(ttl_seconds, clock)
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def put(self, session_id: str, credentials: Credentials) -> Session:
        now = self.now()
        session = Session(
            session_id=session_id,
            credentials=credentials.model_copy(),
            created_at=now,
            last_used=now,
        )
        async with self._lock:
            self._sessions[session_id] = session
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> Session:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            now = self.now()
            if is_expired(session.last_used, now, self.ttl_seconds):
                del self._sessions[session_id]
                raise SessionNotFound(session_id)
            session.last_used = max(session.last_used, now)
            return session.model_copy(deep=True)

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            return self._sessions.pop(session_id, None) is not None

    async def sweep(
        self, now: Optional[float] = None, ttl: Optional[float] = None
    ) -> List[str]:
        now = self.now() if now is None else now
        ttl = self.ttl_seconds if ttl is None else ttl
        async with self._lock:
            expired = [
                sid
                for sid, session in self._sessions.items()
                if is_expired(session.last_used, now, ttl)
            ]
            for sid in expired:
                del self._sessions[sid]
        return expired

    async def count(self) -> int:
        async with self._lock:
            return len(self._sessions)


__all__ = [
    "Clock",
    "CredentialStore",
    "InMemoryCredentialStore",
    "SessionNotFound",
    "is_expired",
]
