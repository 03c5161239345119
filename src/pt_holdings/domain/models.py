"""Domain models for pt_holdings — pure dataclasses, no SQLAlchemy dependency.

PNL is a cached derived value: quantity * price - total_cost at the moment it
was last computed. It is a pure function of the current price and the stored
quantity/cost, never of refresh history, which is what makes duplicate or
out-of-order refresh jobs safe to process.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.pt_common.errors import InvalidHoldingError


@dataclass
class Holding:
    asset_id: str
    owner_id: str
    symbol: str
    quantity: Decimal
    avg_price: Decimal
    total_cost: Decimal     # quantity * avg_price, accumulated across top-ups
    pnl: Decimal = Decimal("0")
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def current_value(self) -> Decimal:
        """Market value implied by the last computed PNL."""
        return self.total_cost + self.pnl


@dataclass
class HolderSnapshot:
    """The columns the bulk recompute needs for one holder of an asset."""

    owner_id: str
    quantity: Decimal
    total_cost: Decimal
    version: int


@dataclass
class RecomputeResult:
    asset_id: str
    updated: int = 0
    failed: int = 0
    owners: tuple[str, ...] = ()


def compute_pnl(quantity: Decimal, total_cost: Decimal, current_price: Decimal) -> Decimal:
    return quantity * current_price - total_cost


def validate_position(quantity: Decimal, price: Decimal) -> None:
    if quantity <= 0:
        raise InvalidHoldingError("quantity must be greater than zero")
    if price <= 0:
        raise InvalidHoldingError("purchase price must be greater than zero")


def new_holding(
    owner_id: str,
    asset_id: str,
    symbol: str,
    quantity: Decimal,
    purchase_price: Decimal,
    current_price: Decimal,
) -> Holding:
    """Build a not-yet-persisted holding with its initial cost basis and PNL."""
    if not asset_id or len(asset_id) > 100:
        raise InvalidHoldingError("asset_id must be 1-100 characters")
    validate_position(quantity, purchase_price)
    total_cost = quantity * purchase_price
    return Holding(
        asset_id=asset_id,
        owner_id=owner_id,
        symbol=symbol,
        quantity=quantity,
        avg_price=purchase_price,
        total_cost=total_cost,
        pnl=compute_pnl(quantity, total_cost, current_price),
    )


def apply_top_up(
    holding: Holding, quantity: Decimal, purchase_price: Decimal, current_price: Decimal
) -> Holding:
    """Merge a purchase into the holding in place; avg price becomes cost/qty."""
    validate_position(quantity, purchase_price)
    holding.total_cost += quantity * purchase_price
    holding.quantity += quantity
    holding.avg_price = holding.total_cost / holding.quantity
    holding.pnl = compute_pnl(holding.quantity, holding.total_cost, current_price)
    return holding
