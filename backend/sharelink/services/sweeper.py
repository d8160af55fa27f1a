import asyncio
import logging
from datetime import timedelta
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool

from sharelink.crud.crud_share import ShareStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Periodic eviction of expired shares, owned by the application lifespan.

    Each cycle also drains the store's deferred cleanup queue, so shares that hit
    their download cap are reclaimed even if no request scheduled the cleanup. An
    entry is only reclaimed once it has been queued for ``cleanup_grace_seconds``.
    """

    def __init__(self, store: ShareStore, interval_seconds: float = 60.0, cleanup_grace_seconds: float = 60.0):
        self.store = store
        self.interval_seconds = interval_seconds
        self.cleanup_grace = timedelta(seconds=cleanup_grace_seconds)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> List[str]:
        """One full scan. Blocking: deletes files."""
        removed = self.store.sweep()
        removed += self.store.run_deferred_cleanup(older_than=self.cleanup_grace)
        if removed:
            logger.info("Cleanup removed %d share(s): %s", len(removed), ", ".join(removed))
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await run_in_threadpool(self.run_once)
            except Exception:
                logger.exception("Expiry sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="sharelink-expiry-sweeper")
        logger.info("Expiry sweeper started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")
