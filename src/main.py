"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000

The lifespan owns every long-lived resource: the DB engine, the Redis pool,
the market data HTTP client and the PNL refresh pipeline.
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.pt_common.database import async_session_factory, engine
from src.pt_common.errors import AppError
from src.pt_common.redis_client import close_redis, get_redis
from src.pt_common.response import error_response
from src.pt_gateway.middleware.request_log import RequestLogMiddleware
from src.pt_holdings.api.router import router as holdings_router
from src.pt_market_data.api.router import router as market_router
from src.pt_market_data.client import close_market_data_client, get_market_data_client
from src.pt_pipeline.supervisor import PipelineSupervisor

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis, start the pipeline. Shutdown: reverse order."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    await redis.ping()
    market = await get_market_data_client()

    supervisor: PipelineSupervisor | None = None
    if settings.PIPELINE_ENABLED:
        supervisor = PipelineSupervisor.build(redis, market, async_session_factory)
        await supervisor.start()
    else:
        logger.info("PNL refresh pipeline disabled")
    app.state.pipeline = supervisor

    yield

    if supervisor is not None:
        await supervisor.stop()
    await close_market_data_client()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(holdings_router, prefix="/api/v1")
app.include_router(market_router, prefix="/api/v1")


@app.get("/health")
async def health(request: Request) -> dict[str, str]:
    pipeline = getattr(request.app.state, "pipeline", None)
    return {
        "status": "ok",
        "version": "0.1.0",
        "pipeline": "running" if pipeline is not None and pipeline.running else "stopped",
    }
