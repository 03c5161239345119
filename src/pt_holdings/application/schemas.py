"""Pydantic schemas for the pt_holdings API."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from src.pt_holdings.domain.models import Holding

HoldingSort = Literal[
    "quantity_asc",
    "quantity_desc",
    "pnl_asc",
    "pnl_desc",
    "asset_id_asc",
    "asset_id_desc",
]

# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class HoldingFilters(BaseModel):
    search: str | None = Field(None, max_length=100, description="Match on asset id or symbol")
    page: int = Field(1, ge=1, lt=10_000)
    per_page: int = Field(20, ge=1, le=100)
    sort: HoldingSort = "quantity_asc"

    @property
    def sort_column(self) -> str:
        return self.sort.rsplit("_", 1)[0]

    @property
    def descending(self) -> bool:
        return self.sort.endswith("_desc")

    @property
    def limit(self) -> int:
        return self.per_page

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class AddHoldingRequest(BaseModel):
    asset_id: str = Field(..., min_length=1, max_length=100)
    quantity: Decimal = Field(..., gt=0)
    purchase_price: Decimal = Field(..., gt=0)


class TopUpRequest(BaseModel):
    quantity: Decimal = Field(..., gt=0)
    purchase_price: Decimal = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HoldingItem(BaseModel):
    asset_id: str
    symbol: str
    quantity: Decimal
    avg_price: Decimal
    total_cost: Decimal
    pnl: Decimal
    current_value: Decimal
    version: int
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, holding: Holding) -> "HoldingItem":
        return cls(
            asset_id=holding.asset_id,
            symbol=holding.symbol,
            quantity=holding.quantity,
            avg_price=holding.avg_price,
            total_cost=holding.total_cost,
            pnl=holding.pnl,
            current_value=holding.current_value,
            version=holding.version,
            updated_at=holding.updated_at,
        )


class HoldingListResponse(BaseModel):
    items: list[HoldingItem]
    page: int
    per_page: int
