"""pt_holdings REST API: five endpoints, all scoped to the token's owner."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_cache.cache import Cache, get_cache
from src.pt_common.database import get_db_session
from src.pt_common.response import ApiResponse, success_response
from src.pt_gateway.auth.dependencies import get_current_owner
from src.pt_holdings.application.portfolio import PortfolioService
from src.pt_holdings.application.schemas import (
    AddHoldingRequest,
    HoldingFilters,
    HoldingItem,
    HoldingListResponse,
    HoldingSort,
    TopUpRequest,
)
from src.pt_holdings.application.service import HoldingStore
from src.pt_market_data.client import MarketDataClient, get_market_data_client

router = APIRouter(prefix="/holdings", tags=["holdings"])


async def get_holding_store(cache: Annotated[Cache, Depends(get_cache)]) -> HoldingStore:
    return HoldingStore(cache)


async def get_portfolio_service(
    store: Annotated[HoldingStore, Depends(get_holding_store)],
    market: Annotated[MarketDataClient, Depends(get_market_data_client)],
) -> PortfolioService:
    return PortfolioService(store, market)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_holding(
    body: AddHoldingRequest,
    owner_id: Annotated[str, Depends(get_current_owner)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    portfolio: Annotated[PortfolioService, Depends(get_portfolio_service)],
    request: Request,
) -> ApiResponse:
    holding = await portfolio.add_asset(
        db, owner_id, body.asset_id, body.quantity, body.purchase_price
    )
    return success_response(HoldingItem.from_domain(holding).model_dump(mode="json"), request)


@router.get("")
async def list_holdings(
    owner_id: Annotated[str, Depends(get_current_owner)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    store: Annotated[HoldingStore, Depends(get_holding_store)],
    request: Request,
    search: str | None = Query(None, max_length=100, description="Asset id or symbol"),
    page: int = Query(1, ge=1, lt=10_000),
    per_page: int = Query(20, ge=1, le=100),
    sort: HoldingSort = Query("quantity_asc"),
) -> ApiResponse:
    filters = HoldingFilters(search=search, page=page, per_page=per_page, sort=sort)
    holdings = await store.get_holdings_for_owner(db, owner_id, filters)
    data = HoldingListResponse(
        items=[HoldingItem.from_domain(h) for h in holdings],
        page=filters.page,
        per_page=filters.per_page,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.get("/{asset_id}")
async def get_holding(
    asset_id: str,
    owner_id: Annotated[str, Depends(get_current_owner)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    store: Annotated[HoldingStore, Depends(get_holding_store)],
    request: Request,
) -> ApiResponse:
    holding = await store.get_holding(db, owner_id, asset_id)
    return success_response(HoldingItem.from_domain(holding).model_dump(mode="json"), request)


@router.patch("/{asset_id}")
async def top_up_holding(
    asset_id: str,
    body: TopUpRequest,
    owner_id: Annotated[str, Depends(get_current_owner)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    portfolio: Annotated[PortfolioService, Depends(get_portfolio_service)],
    request: Request,
) -> ApiResponse:
    holding = await portfolio.top_up(
        db, owner_id, asset_id, body.quantity, body.purchase_price
    )
    return success_response(HoldingItem.from_domain(holding).model_dump(mode="json"), request)


@router.delete("/{asset_id}")
async def delete_holding(
    asset_id: str,
    owner_id: Annotated[str, Depends(get_current_owner)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    store: Annotated[HoldingStore, Depends(get_holding_store)],
    request: Request,
) -> ApiResponse:
    await store.delete_holding(db, owner_id, asset_id)
    return success_response({"asset_id": asset_id, "deleted": True}, request)
