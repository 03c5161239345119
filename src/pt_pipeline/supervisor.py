"""PipelineSupervisor — owns the scheduler and worker tasks.

Both loops run for the lifetime of the process as two asyncio tasks sharing
one stop event. `stop()` sets the event, gives the loops a short grace period
to notice it (the worker checks between bounded pops, the scheduler wakes
immediately), then cancels whatever is still running. A job in flight at that
point is not guaranteed to finish.
"""

import asyncio
import logging

import redis.asyncio as aioredis

from config.settings import settings
from src.pt_cache.cache import Cache
from src.pt_holdings.application.service import HoldingStore
from src.pt_market_data.client import MarketDataClient
from src.pt_pipeline.lifecycle import SessionFactory
from src.pt_pipeline.queue import RefreshQueue
from src.pt_pipeline.scheduler import RefreshScheduler
from src.pt_pipeline.worker import RefreshWorker

logger = logging.getLogger(__name__)


class PipelineSupervisor:
    def __init__(
        self,
        scheduler: RefreshScheduler,
        worker: RefreshWorker,
        store: HoldingStore,
    ) -> None:
        self.scheduler = scheduler
        self.worker = worker
        self._store = store
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @classmethod
    def build(
        cls,
        redis: aioredis.Redis,
        market: MarketDataClient,
        session_factory: SessionFactory,
    ) -> "PipelineSupervisor":
        store = HoldingStore(Cache(redis))
        queue = RefreshQueue(redis, settings.REFRESH_QUEUE_NAME)
        return cls(
            scheduler=RefreshScheduler(
                store, queue, session_factory, settings.REFRESH_INTERVAL_SECONDS
            ),
            worker=RefreshWorker(
                store, market, queue, session_factory, settings.QUEUE_POP_TIMEOUT_SECONDS
            ),
            store=store,
        )

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        # Entries cached by a previous process may predate its last refresh
        dropped = await self._store.invalidate_all_aggregates()
        logger.info("starting PNL refresh pipeline (%d stale aggregate(s) dropped)", dropped)
        self._tasks = [
            asyncio.create_task(self.scheduler.run(self._stop), name="pnl-refresh-scheduler"),
            asyncio.create_task(self.worker.run(self._stop), name="pnl-refresh-worker"),
        ]

    async def stop(self, timeout: float = 2.0) -> None:
        if not self._tasks:
            return
        self._stop.set()
        done, pending = await asyncio.wait(self._tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "%s exited with an error", task.get_name(), exc_info=task.exception()
                )
        self._tasks = []
        logger.info("PNL refresh pipeline stopped (%d task(s) cancelled)", len(pending))
