"""Market data pass-through API (public, uncached)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pt_common.response import ApiResponse, success_response
from src.pt_market_data.client import MarketDataClient, get_market_data_client
from src.pt_market_data.schemas import MarketFilters, MarketOrder

router = APIRouter(prefix="/market", tags=["market"])


@router.get("/coins")
async def list_coins(
    market: Annotated[MarketDataClient, Depends(get_market_data_client)],
    request: Request,
    currency: str = Query("usd", min_length=1, max_length=10),
    ids: str | None = Query(None, description="Comma-separated asset ids"),
    page: int = Query(1, ge=1, lt=100),
    per_page: int = Query(20, ge=1, lt=250),
    order: MarketOrder = Query("market_cap_desc"),
) -> ApiResponse:
    filters = MarketFilters(ids=ids, page=page, per_page=per_page, order=order)
    coins = await market.get_market_snapshot(currency.lower(), filters)
    return success_response(
        {"coins": [coin.model_dump(mode="json") for coin in coins]}, request
    )
