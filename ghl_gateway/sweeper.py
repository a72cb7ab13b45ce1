from __future__ import annotations

import asyncio
from typing import List, Optional

from .logging_config import logger
from .storage import CredentialStore


class SessionSweeper:
    """
    Background task that evicts idle sessions every `interval` seconds.

    A failing sweep is logged and the loop keeps running; request handling
    never waits on it.
    """

    def __init__(self, store: CredentialStore, *, interval: float, ttl: Optional[float] = None) -> None:
        self.store = store
        self.interval = interval
        self.ttl = ttl
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> List[str]:
        removed = await self.store.sweep(ttl=self.ttl)
        if removed:
            logger.info("Session sweep evicted %d session(s): %s", len(removed), removed)
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Session sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="session-sweeper")
        logger.info("Session sweeper started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Session sweeper stopped")


__all__ = ["SessionSweeper"]
