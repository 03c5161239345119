"""Pydantic schemas for the market data client and its pass-through API."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MarketOrder = Literal["market_cap_asc", "market_cap_desc", "id_asc", "id_desc"]


class MarketFilters(BaseModel):
    """Listing filters forwarded to the /coins/markets endpoint."""

    ids: str | None = Field(None, description="Comma-separated asset ids")
    page: int = Field(1, ge=1, lt=100)
    per_page: int = Field(20, ge=1, lt=250)
    order: MarketOrder = "market_cap_desc"

    def to_query(self) -> dict[str, str | int]:
        params: dict[str, str | int] = {
            "page": self.page,
            "per_page": self.per_page,
            "order": self.order,
        }
        if self.ids:
            params["ids"] = self.ids
        return params


class CachedPrice(BaseModel):
    """Value stored under coin:price:<asset_id>."""

    price: Decimal
    symbol: str


class CoinMarketData(BaseModel):
    """One row of the upstream market listing."""

    model_config = ConfigDict(extra="ignore")

    id: str
    symbol: str
    market_cap_rank: int | None = None
    current_price: Decimal | None = None
    market_cap: Decimal | None = None
    price_change_24h: Decimal | None = None
    circulating_supply: Decimal | None = None
    max_supply: Decimal | None = None
    ath: Decimal | None = None
    last_updated: str | None = None
