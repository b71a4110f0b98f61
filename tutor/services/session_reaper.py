"""Periodic eviction of idle tutoring sessions."""

import asyncio
import json
import logging
import time
from typing import Callable, List, Optional

from tutor.services.session_store import SessionStore

logger = logging.getLogger("tutor.session_reaper")


class SessionReaper:
    """Runs `SessionStore.evict_idle` on a fixed interval as an asyncio task."""

    def __init__(
        self,
        store: SessionStore,
        interval_seconds: float = 60,
        on_evicted: Optional[Callable[[str], None]] = None,
    ):
        self.store = store
        self.interval_seconds = interval_seconds
        self.on_evicted = on_evicted
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("Session reaper already running")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Session reaper started (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session reaper stopped")

    async def run_once(self) -> List[str]:
        start_time = time.time()
        evicted = await self.store.evict_idle()
        if self.on_evicted:
            for session_id in evicted:
                self.on_evicted(session_id)

        logger.info(json.dumps({
            "step": "SESSION_REAP",
            "status": "complete",
            "evicted": len(evicted),
            "duration_ms": int((time.time() - start_time) * 1000),
        }))
        return evicted

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Session reaper sweep failed: {e}")
