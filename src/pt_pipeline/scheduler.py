"""RefreshScheduler — periodically enqueues one refresh job per tracked asset.

State machine: IDLE -> FIRING -> IDLE on a fixed wall-clock interval that is
independent of worker throughput. The scheduler keeps no per-asset state, so
running two of them only produces duplicate (idempotent) jobs.
"""

import asyncio
import logging
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.pt_common.errors import QueueTransportError
from src.pt_holdings.application.service import HoldingStore
from src.pt_pipeline.lifecycle import SessionFactory, wait_for_stop
from src.pt_pipeline.queue import RefreshJob, RefreshQueue

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "IDLE"
    FIRING = "FIRING"


class RefreshScheduler:
    def __init__(
        self,
        store: HoldingStore,
        queue: RefreshQueue,
        session_factory: SessionFactory,
        interval: float = settings.REFRESH_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._queue = queue
        self._session_factory = session_factory
        self.interval = interval
        self.state = SchedulerState.IDLE

    async def fire(self) -> int:
        """Discover tracked assets and enqueue a job for each; returns jobs enqueued."""
        self.state = SchedulerState.FIRING
        try:
            try:
                async with self._session_factory() as db:
                    asset_ids = await self._store.discover_tracked_assets(db)
            except SQLAlchemyError as exc:
                logger.error("asset discovery failed, skipping this cycle: %s", exc)
                return 0

            enqueued = 0
            for asset_id in asset_ids:
                try:
                    await self._queue.push(RefreshJob(asset_id))
                except QueueTransportError as exc:
                    logger.warning("could not enqueue refresh for %s: %s", asset_id, exc)
                    continue
                enqueued += 1

            logger.info("enqueued %d/%d PNL refresh jobs", enqueued, len(asset_ids))
            return enqueued
        finally:
            self.state = SchedulerState.IDLE

    async def run(self, stop: asyncio.Event) -> None:
        logger.info("refresh scheduler started (interval=%ss)", self.interval)
        while not await wait_for_stop(stop, self.interval):
            try:
                await self.fire()
            except Exception:
                logger.exception("refresh scheduler cycle failed")
        logger.info("refresh scheduler stopped")
