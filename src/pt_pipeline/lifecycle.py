"""Cooperative shutdown helpers shared by the pipeline loops."""

import asyncio
import contextlib
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from sqlalchemy.ext.asyncio import AsyncSession

# Anything that opens a session: async_session_factory in production
SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


async def wait_for_stop(stop: asyncio.Event, timeout: float) -> bool:
    """Sleep up to timeout seconds; return True as soon as stop is set."""
    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(stop.wait(), timeout=timeout)
    return stop.is_set()
