"""PortfolioService — user-initiated holding changes that need a live price.

Adding an asset prices it once (and confirms it exists upstream); a top-up
merges the purchase into the cost basis and re-prices the position. PNL from
then on is maintained by the refresh pipeline.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_holdings.application.service import HoldingStore
from src.pt_holdings.domain.models import Holding, apply_top_up, new_holding
from src.pt_market_data.client import MarketDataClient


class PortfolioService:
    def __init__(self, store: HoldingStore, market: MarketDataClient) -> None:
        self._store = store
        self._market = market

    async def add_asset(
        self,
        db: AsyncSession,
        owner_id: str,
        asset_id: str,
        quantity: Decimal,
        purchase_price: Decimal,
    ) -> Holding:
        current_price, symbol = await self._market.get_current_price_and_symbol(asset_id)
        holding = new_holding(
            owner_id, asset_id, symbol, quantity, purchase_price, current_price
        )
        return await self._store.add_holding(db, holding)

    async def top_up(
        self,
        db: AsyncSession,
        owner_id: str,
        asset_id: str,
        quantity: Decimal,
        purchase_price: Decimal,
    ) -> Holding:
        """Merge a purchase; raises EditConflictError if the row changed since read."""
        holding = await self._store.get_holding(db, owner_id, asset_id)
        current_price, _ = await self._market.get_current_price_and_symbol(asset_id)
        apply_top_up(holding, quantity, purchase_price, current_price)
        return await self._store.update_holding(db, holding)
