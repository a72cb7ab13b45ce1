"""
Redis-backed credential store.

Sessions are stored as JSON under `ghl:session:{session_id}` with a Redis
expiry equal to the TTL, so idle sessions disappear even if no sweep runs.
The periodic sweep still applies the same `last_used` rule as the in-memory
store.

Every read-modify-write of a session key runs as a WATCH/MULTI transaction,
retried when the key changes underneath it, so a refresh or a sweep never
undoes a concurrent `put` of new credentials.
"""

from __future__ import annotations

import json
import math
from typing import List, Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.asyncio.client import Pipeline

from ghl_gateway.logging_config import logger
from ghl_gateway.models import Credentials, Session
from ghl_gateway.redis_client import redis_delete, redis_set_json

from .credential_store import Clock, CredentialStore, SessionNotFound, is_expired

SESSION_KEY_PREFIX = "ghl:session:"
SESSION_KEY_TEMPLATE = SESSION_KEY_PREFIX + "{session_id}"


def _session_key(session_id: str) -> str:
    return SESSION_KEY_TEMPLATE.format(session_id=session_id)


def _decode(key: str, raw: Optional[str]) -> Optional[Session]:
    if raw is None:
        return None
    try:
        return Session.model_validate_json(raw)
    except ValidationError:
        logger.warning("Dropping malformed session record at %s", key)
        return None


class RedisCredentialStore(CredentialStore):
    def __init__(
        self,
        redis: Redis,
        ttl_seconds: float,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(ttl_seconds, clock)
        self._redis = redis

    @property
    def _expiry(self) -> int:
        # Redis expiry is whole seconds; one extra second keeps the
        # boundary record readable until the sweep rule evicts it.
        return max(1, math.ceil(self.ttl_seconds) + 1)

    async def put(self, session_id: str, credentials: Credentials) -> Session:
        now = self.now()
        session = Session(
            session_id=session_id,
            credentials=credentials,
            created_at=now,
            last_used=now,
        )
        await redis_set_json(
            self._redis,
            _session_key(session_id),
            session.model_dump(),
            ttl_seconds=self._expiry,
        )
        return session

    async def get(self, session_id: str) -> Session:
        key = _session_key(session_id)
        now = self.now()

        async def refresh(pipe: Pipeline) -> Optional[Session]:
            session = _decode(key, await pipe.get(key))
            pipe.multi()
            if session is None or is_expired(session.last_used, now, self.ttl_seconds):
                pipe.delete(key)
                return None
            session.last_used = max(session.last_used, now)
            pipe.set(
                key,
                json.dumps(session.model_dump(), ensure_ascii=False),
                ex=self._expiry,
                xx=True,
            )
            return session

        session = await self._redis.transaction(refresh, key, value_from_callable=True)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def delete(self, session_id: str) -> bool:
        return await redis_delete(self._redis, _session_key(session_id))

    async def _evict_if_expired(self, key: str, now: float, ttl: float) -> Optional[str]:
        async def check(pipe: Pipeline) -> Optional[str]:
            raw = await pipe.get(key)
            session = _decode(key, raw)
            pipe.multi()
            if raw is not None and session is None:
                pipe.delete(key)
                return None
            if session is None or not is_expired(session.last_used, now, ttl):
                return None
            pipe.delete(key)
            return session.session_id

        return await self._redis.transaction(check, key, value_from_callable=True)

    async def sweep(
        self, now: Optional[float] = None, ttl: Optional[float] = None
    ) -> List[str]:
        now = self.now() if now is None else now
        ttl = self.ttl_seconds if ttl is None else ttl
        removed: List[str] = []
        async for key in self._redis.scan_iter(match=f"{SESSION_KEY_PREFIX}*"):
            session_id = await self._evict_if_expired(key, now, ttl)
            if session_id is not None:
                removed.append(session_id)
        return removed

    async def count(self) -> int:
        total = 0
        async for _ in self._redis.scan_iter(match=f"{SESSION_KEY_PREFIX}*"):
            total += 1
        return total

    async def close(self) -> None:
        await self._redis.aclose()


__all__ = ["RedisCredentialStore", "SESSION_KEY_PREFIX", "SESSION_KEY_TEMPLATE"]
