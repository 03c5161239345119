"""RefreshQueue — FIFO work queue of refresh jobs on a single Redis list.

Producers RPUSH to the tail, the consumer BLPOPs from the head with a bounded
wait. Delivery is at-least-once: a job popped by a worker that dies before
finishing is gone until the next scheduled sweep enqueues it again, which is
fine because jobs carry nothing but an asset id.
"""

from dataclasses import dataclass

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings
from src.pt_common.errors import InvalidRefreshJobError, QueueTransportError


@dataclass(frozen=True)
class RefreshJob:
    asset_id: str

    @classmethod
    def from_payload(cls, payload: object) -> "RefreshJob":
        if not isinstance(payload, str) or not payload.strip():
            raise InvalidRefreshJobError(payload)
        return cls(asset_id=payload.strip())

    def to_payload(self) -> str:
        return self.asset_id


class RefreshQueue:
    def __init__(
        self, redis: aioredis.Redis, name: str = settings.REFRESH_QUEUE_NAME
    ) -> None:
        self._redis = redis
        self.name = name

    async def push(self, job: RefreshJob) -> int:
        """Append a job; returns the queue length after the push."""
        try:
            return int(await self._redis.rpush(self.name, job.to_payload()))
        except RedisError as exc:
            raise QueueTransportError(str(exc)) from exc

    async def pop(self, timeout: float) -> str | None:
        """Block up to timeout seconds for the head payload; None on timeout."""
        try:
            item = await self._redis.blpop([self.name], timeout=timeout)
        except RedisError as exc:
            raise QueueTransportError(str(exc)) from exc
        if item is None:
            return None
        _, payload = item
        return payload

    async def size(self) -> int:
        try:
            return int(await self._redis.llen(self.name))
        except RedisError as exc:
            raise QueueTransportError(str(exc)) from exc
