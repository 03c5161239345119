"""HTTP-level tests for the holdings and market routers with overridden dependencies."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from jose import jwt

from config.settings import settings
from src.main import app
from src.pt_common.database import get_db_session
from src.pt_common.errors import EditConflictError, HoldingExistsError, HoldingNotFoundError
from src.pt_holdings.api.router import get_holding_store, get_portfolio_service
from src.pt_holdings.domain.models import Holding
from src.pt_market_data.client import get_market_data_client
from src.pt_market_data.schemas import CoinMarketData


def _auth(owner_id: str = "user-1") -> dict[str, str]:
    token = jwt.encode(
        {"sub": owner_id, "type": "access", "exp": datetime.now(UTC) + timedelta(minutes=5)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


def _holding(asset_id: str = "btc", owner_id: str = "user-1") -> Holding:
    return Holding(
        asset_id=asset_id,
        owner_id=owner_id,
        symbol=asset_id,
        quantity=Decimal("2"),
        avg_price=Decimal("20"),
        total_cost=Decimal("40"),
        pnl=Decimal("20"),
    )


async def _fake_db():
    yield MagicMock()


@pytest.fixture
def store() -> AsyncMock:
    store = AsyncMock()
    app.dependency_overrides[get_holding_store] = lambda: store
    app.dependency_overrides[get_db_session] = _fake_db
    return store


@pytest.fixture
def portfolio() -> AsyncMock:
    portfolio = AsyncMock()
    app.dependency_overrides[get_portfolio_service] = lambda: portfolio
    app.dependency_overrides[get_db_session] = _fake_db
    return portfolio


class TestHealth:
    async def test_health(self, client) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["pipeline"] == "stopped"


class TestAuth:
    async def test_missing_token(self, client, store) -> None:
        resp = await client.get("/api/v1/holdings")
        assert resp.status_code == 401

    async def test_bad_token(self, client, store) -> None:
        resp = await client.get(
            "/api/v1/holdings", headers={"Authorization": "Bearer garbage"}
        )
        assert resp.status_code == 401
        store.get_holdings_for_owner.assert_not_awaited()


class TestListHoldings:
    async def test_lists_for_token_owner(self, client, store) -> None:
        store.get_holdings_for_owner.return_value = [_holding()]

        resp = await client.get(
            "/api/v1/holdings?sort=pnl_desc&per_page=5", headers=_auth("owner-9")
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["items"][0]["asset_id"] == "btc"
        assert body["data"]["per_page"] == 5
        assert body["request_id"] == resp.headers["X-Request-ID"]
        args = store.get_holdings_for_owner.await_args.args
        assert args[1] == "owner-9"
        assert args[2].sort == "pnl_desc"

    async def test_rejects_unknown_sort(self, client, store) -> None:
        resp = await client.get("/api/v1/holdings?sort=symbol_asc", headers=_auth())
        assert resp.status_code == 422


class TestSingleHolding:
    async def test_get(self, client, store) -> None:
        store.get_holding.return_value = _holding("eth")

        resp = await client.get("/api/v1/holdings/eth", headers=_auth())

        assert resp.status_code == 200
        assert resp.json()["data"]["symbol"] == "eth"

    async def test_not_found_envelope(self, client, store) -> None:
        store.get_holding.side_effect = HoldingNotFoundError("user-1", "eth")

        resp = await client.get("/api/v1/holdings/eth", headers=_auth())

        assert resp.status_code == 404
        assert resp.json()["code"] == 2001
        assert resp.json()["data"] is None

    async def test_delete(self, client, store) -> None:
        resp = await client.delete("/api/v1/holdings/btc", headers=_auth())

        assert resp.status_code == 200
        assert resp.json()["data"] == {"asset_id": "btc", "deleted": True}
        assert store.delete_holding.await_args.args[1:] == ("user-1", "btc")


class TestWrites:
    async def test_add(self, client, portfolio) -> None:
        portfolio.add_asset.return_value = _holding()

        resp = await client.post(
            "/api/v1/holdings",
            json={"asset_id": "btc", "quantity": "2", "purchase_price": "20"},
            headers=_auth(),
        )

        assert resp.status_code == 201
        assert Decimal(resp.json()["data"]["pnl"]) == Decimal("20")
        assert Decimal(resp.json()["data"]["current_value"]) == Decimal("60")
        assert portfolio.add_asset.await_args.args[1:] == (
            "user-1", "btc", Decimal("2"), Decimal("20")
        )

    async def test_add_duplicate(self, client, portfolio) -> None:
        portfolio.add_asset.side_effect = HoldingExistsError("btc")

        resp = await client.post(
            "/api/v1/holdings",
            json={"asset_id": "btc", "quantity": "2", "purchase_price": "20"},
            headers=_auth(),
        )

        assert resp.status_code == 409
        assert resp.json()["code"] == 2002

    async def test_add_rejects_zero_quantity(self, client, portfolio) -> None:
        resp = await client.post(
            "/api/v1/holdings",
            json={"asset_id": "btc", "quantity": "0", "purchase_price": "20"},
            headers=_auth(),
        )
        assert resp.status_code == 422

    async def test_top_up_conflict(self, client, portfolio) -> None:
        portfolio.top_up.side_effect = EditConflictError("user-1", "btc")

        resp = await client.patch(
            "/api/v1/holdings/btc",
            json={"quantity": "1", "purchase_price": "30"},
            headers=_auth(),
        )

        assert resp.status_code == 409
        assert resp.json()["code"] == 2003


class TestMarketCoins:
    async def test_passes_filters_through(self, client) -> None:
        market = AsyncMock()
        market.get_market_snapshot.return_value = [
            CoinMarketData(id="bitcoin", symbol="btc", current_price=Decimal("60000"))
        ]
        app.dependency_overrides[get_market_data_client] = lambda: market

        resp = await client.get("/api/v1/market/coins?currency=GBP&ids=bitcoin&page=2")

        assert resp.status_code == 200
        assert resp.json()["data"]["coins"][0]["id"] == "bitcoin"
        currency, filters = market.get_market_snapshot.await_args.args
        assert currency == "gbp"
        assert filters.ids == "bitcoin"
        assert filters.page == 2


class TestRequestId:
    async def test_upstream_request_id_is_reused(self, client) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "edge-42"})
        assert resp.headers["X-Request-ID"] == "edge-42"

    async def test_unsafe_request_id_is_replaced(self, client) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "bad id\twith spaces"})
        assert resp.headers["X-Request-ID"].startswith("req_")
