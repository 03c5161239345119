"""Unit tests for PortfolioService with mock store and market client."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.pt_common.errors import AssetNotFoundError, EditConflictError
from src.pt_holdings.application.portfolio import PortfolioService
from src.pt_holdings.domain.models import Holding


def _existing() -> Holding:
    return Holding(
        asset_id="eth",
        owner_id="user-1",
        symbol="eth",
        quantity=Decimal("1"),
        avg_price=Decimal("100"),
        total_cost=Decimal("100"),
        version=7,
    )


@pytest.fixture
def store() -> AsyncMock:
    store = AsyncMock()
    store.add_holding.side_effect = lambda db, holding: holding
    store.update_holding.side_effect = lambda db, holding: holding
    return store


@pytest.fixture
def market() -> AsyncMock:
    market = AsyncMock()
    market.get_current_price_and_symbol.return_value = (Decimal("150"), "eth")
    return market


class TestAddAsset:
    async def test_prices_and_stores_new_holding(self, store, market) -> None:
        svc = PortfolioService(store, market)

        holding = await svc.add_asset(MagicMock(), "user-1", "eth", Decimal("2"), Decimal("100"))

        assert holding.symbol == "eth"
        assert holding.total_cost == Decimal("200")
        assert holding.pnl == Decimal("100")
        store.add_holding.assert_awaited_once()

    async def test_unknown_asset_is_not_stored(self, store, market) -> None:
        market.get_current_price_and_symbol.side_effect = AssetNotFoundError("nope")
        svc = PortfolioService(store, market)

        with pytest.raises(AssetNotFoundError):
            await svc.add_asset(MagicMock(), "user-1", "nope", Decimal("1"), Decimal("1"))

        store.add_holding.assert_not_awaited()


class TestTopUp:
    async def test_merges_purchase_and_keeps_read_version(self, store, market) -> None:
        store.get_holding.return_value = _existing()
        svc = PortfolioService(store, market)

        holding = await svc.top_up(MagicMock(), "user-1", "eth", Decimal("3"), Decimal("200"))

        assert holding.quantity == Decimal("4")
        assert holding.avg_price == Decimal("175")
        assert holding.pnl == Decimal("-100")
        assert holding.version == 7

    async def test_conflict_propagates(self, store, market) -> None:
        store.get_holding.return_value = _existing()
        store.update_holding.side_effect = EditConflictError("user-1", "eth")
        svc = PortfolioService(store, market)

        with pytest.raises(EditConflictError):
            await svc.top_up(MagicMock(), "user-1", "eth", Decimal("1"), Decimal("1"))
