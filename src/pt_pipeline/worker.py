"""RefreshWorker — single consumer of the refresh queue.

For each popped asset id: resolve the current price through the market data
client, then recompute PNL for every holder. A failure for one asset is
logged and the loop moves on; nothing a single job does can stop the loop.
The bounded BLPOP is the checkpoint where shutdown is observed.
"""

import asyncio
import logging

from config.settings import settings
from src.pt_common.errors import (
    InvalidRefreshJobError,
    NotFoundError,
    QueueTransportError,
    TransportError,
)
from src.pt_holdings.application.service import HoldingStore
from src.pt_holdings.domain.models import RecomputeResult
from src.pt_market_data.client import MarketDataClient
from src.pt_pipeline.lifecycle import SessionFactory, wait_for_stop
from src.pt_pipeline.queue import RefreshJob, RefreshQueue

logger = logging.getLogger(__name__)

QUEUE_ERROR_BACKOFF_SECONDS = 5.0


class RefreshWorker:
    def __init__(
        self,
        store: HoldingStore,
        market: MarketDataClient,
        queue: RefreshQueue,
        session_factory: SessionFactory,
        pop_timeout: float = settings.QUEUE_POP_TIMEOUT_SECONDS,
        backoff: float = QUEUE_ERROR_BACKOFF_SECONDS,
    ) -> None:
        self._store = store
        self._market = market
        self._queue = queue
        self._session_factory = session_factory
        self._pop_timeout = pop_timeout
        self._backoff = backoff
        self.processed = 0

    async def process(self, payload: object) -> RecomputeResult | None:
        """Handle one job; None when the price could not be resolved."""
        job = RefreshJob.from_payload(payload)
        try:
            price, _ = await self._market.get_current_price_and_symbol(job.asset_id)
        except (NotFoundError, TransportError) as exc:
            logger.warning("price refresh skipped for %s: %s", job.asset_id, exc.message)
            return None

        async with self._session_factory() as db:
            return await self._store.recompute_pnl(db, job.asset_id, price)

    async def run(self, stop: asyncio.Event) -> None:
        logger.info("refresh worker started (queue=%s)", self._queue.name)
        while not stop.is_set():
            try:
                payload = await self._queue.pop(self._pop_timeout)
            except QueueTransportError as exc:
                logger.error("error popping from refresh queue: %s", exc.message)
                await wait_for_stop(stop, self._backoff)
                continue
            if payload is None:
                continue

            try:
                await self.process(payload)
            except InvalidRefreshJobError as exc:
                logger.warning("dropping refresh job: %s", exc.message)
            except Exception:
                logger.exception("refresh job %r failed", payload)
            finally:
                self.processed += 1
        logger.info("refresh worker stopped after %d job(s)", self.processed)
