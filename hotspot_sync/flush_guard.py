# hotspot_sync/flush_guard.py

import asyncio

from hotspot_sync.settings import FLUSH_POLL_INTERVAL, logger


class FlushGuard:
    """
    Polling loop that drives every open editor session's sync policy:
    due debounce timers fire and the periodic retry runs from here.
    """

    def __init__(self, service, poll_interval: float = FLUSH_POLL_INTERVAL):
        self.service = service
        self.poll_interval = poll_interval
        self._running = False

    def tick_once(self) -> int:
        fired = 0
        for session in self.service.sessions():
            try:
                fired += session.policy.tick()
            except Exception:
                logger.exception(f"Sync tick failed for project {session.project_id}")
        return fired

    async def run(self) -> None:
        logger.info(f"FlushGuard running (poll_interval={self.poll_interval}s)")
        self._running = True
        while self._running:
            # flushes block on the row store
            await asyncio.to_thread(self.tick_once)
            await asyncio.sleep(self.poll_interval)
        logger.info("FlushGuard stopped")

    def stop(self) -> None:
        self._running = False
