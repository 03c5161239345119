"""Unit tests for MarketDataClient over httpx.MockTransport."""

import json
from decimal import Decimal

import httpx
import pytest

from src.pt_cache.cache import Cache
from src.pt_cache.keys import price_cache_key
from src.pt_common.errors import (
    AssetNotFoundError,
    InvalidCurrencyError,
    MarketDataTransportError,
    NotFoundError,
    TransportError,
)
from src.pt_market_data.client import PRICE_CACHE_TTL, MarketDataClient
from src.pt_market_data.schemas import CachedPrice, MarketFilters

_BASE_URL = "https://market.test/api/v3"


def _coin_body(symbol: str = "eth", price: object = 3000.25) -> dict:
    return {
        "id": "ethereum",
        "symbol": symbol,
        "market_data": {"current_price": {"usd": price, "eur": 2800}},
    }


class _Upstream:
    """Records requests and answers each one with the configured handler."""

    def __init__(self, handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def _client(upstream: _Upstream, cache: Cache | None = None) -> MarketDataClient:
    http = httpx.AsyncClient(
        base_url=_BASE_URL,
        transport=httpx.MockTransport(upstream),
        headers={"x-cg-demo-api-key": "demo-key"},
    )
    return MarketDataClient(http, cache, quote_currency="usd")


class TestCurrentPrice:
    async def test_returns_price_and_symbol(self) -> None:
        upstream = _Upstream(lambda _: httpx.Response(200, json=_coin_body()))
        client = _client(upstream)

        price, symbol = await client.get_current_price_and_symbol("ethereum")

        assert price == Decimal("3000.25")
        assert symbol == "eth"
        assert upstream.requests[0].url.path == "/api/v3/coins/ethereum"
        await client.aclose()

    async def test_price_keeps_decimal_precision(self) -> None:
        raw = json.dumps(_coin_body(price=0.1)).replace("0.1", "0.10000000000000000001")
        upstream = _Upstream(lambda _: httpx.Response(200, content=raw.encode()))
        client = _client(upstream)

        price, _ = await client.get_current_price_and_symbol("ethereum")

        assert price == Decimal("0.10000000000000000001")

    async def test_sends_api_key_header(self) -> None:
        upstream = _Upstream(lambda _: httpx.Response(200, json=_coin_body()))
        client = _client(upstream)

        await client.get_current_price_and_symbol("ethereum")

        assert upstream.requests[0].headers["x-cg-demo-api-key"] == "demo-key"

    async def test_second_lookup_within_ttl_is_served_from_cache(self, cache) -> None:
        upstream = _Upstream(lambda _: httpx.Response(200, json=_coin_body()))
        client = _client(upstream, cache)

        first = await client.get_current_price_and_symbol("eth")
        second = await client.get_current_price_and_symbol("eth")

        assert first == second == (Decimal("3000.25"), "eth")
        assert len(upstream.requests) == 1

    async def test_caches_with_fixed_five_minute_ttl(self, cache, fake_redis) -> None:
        upstream = _Upstream(lambda _: httpx.Response(200, json=_coin_body()))
        client = _client(upstream, cache)

        await client.get_current_price_and_symbol("eth")

        assert fake_redis.ttls[price_cache_key("eth")] == PRICE_CACHE_TTL
        cached = await cache.get(price_cache_key("eth"), CachedPrice)
        assert cached == CachedPrice(price=Decimal("3000.25"), symbol="eth")

    async def test_unknown_asset_raises_not_found(self) -> None:
        upstream = _Upstream(lambda _: httpx.Response(404, json={"error": "coin not found"}))
        client = _client(upstream)

        with pytest.raises(AssetNotFoundError) as exc_info:
            await client.get_current_price_and_symbol("nope")

        assert isinstance(exc_info.value, NotFoundError)

    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_upstream_unavailable_is_transport_error(self, status: int) -> None:
        upstream = _Upstream(lambda _: httpx.Response(status, text="busy"))
        client = _client(upstream)

        with pytest.raises(MarketDataTransportError) as exc_info:
            await client.get_current_price_and_symbol("eth")

        assert isinstance(exc_info.value, TransportError)

    async def test_connection_failure_is_transport_error(self) -> None:
        def _refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(_Upstream(_refuse))

        with pytest.raises(MarketDataTransportError):
            await client.get_current_price_and_symbol("eth")

    @pytest.mark.parametrize(
        "content",
        [
            b"<html>not json</html>",
            json.dumps({"symbol": "eth"}).encode(),
            json.dumps(_coin_body(price="abc")).encode(),
        ],
    )
    async def test_undecodable_body_is_transport_error(self, content: bytes) -> None:
        upstream = _Upstream(lambda _: httpx.Response(200, content=content))
        client = _client(upstream)

        with pytest.raises(MarketDataTransportError):
            await client.get_current_price_and_symbol("eth")

    async def test_failures_are_not_cached(self, cache) -> None:
        responses = iter([httpx.Response(503), httpx.Response(200, json=_coin_body())])
        upstream = _Upstream(lambda _: next(responses))
        client = _client(upstream, cache)

        with pytest.raises(MarketDataTransportError):
            await client.get_current_price_and_symbol("eth")
        price, _ = await client.get_current_price_and_symbol("eth")

        assert price == Decimal("3000.25")
        assert len(upstream.requests) == 2

    async def test_cache_outage_falls_through_to_upstream(self, cache, fake_redis) -> None:
        fake_redis.fail = True
        upstream = _Upstream(lambda _: httpx.Response(200, json=_coin_body()))
        client = _client(upstream, cache)

        price, _ = await client.get_current_price_and_symbol("eth")

        assert price == Decimal("3000.25")


class TestMarketSnapshot:
    async def test_forwards_currency_and_filters(self) -> None:
        rows = [
            {"id": "bitcoin", "symbol": "btc", "current_price": 60000, "image": "x.png"},
            {"id": "ethereum", "symbol": "eth", "current_price": 3000.5},
        ]
        upstream = _Upstream(lambda _: httpx.Response(200, json=rows))
        client = _client(upstream)

        result = await client.get_market_snapshot(
            "gbp", MarketFilters(ids="bitcoin,ethereum", page=2, per_page=10, order="id_asc")
        )

        params = upstream.requests[0].url.params
        assert upstream.requests[0].url.path == "/api/v3/coins/markets"
        assert params["vs_currency"] == "gbp"
        assert params["ids"] == "bitcoin,ethereum"
        assert params["page"] == "2"
        assert params["per_page"] == "10"
        assert params["order"] == "id_asc"
        assert [row.id for row in result] == ["bitcoin", "ethereum"]
        assert result[1].current_price == Decimal("3000.5")

    async def test_ids_omitted_when_not_given(self) -> None:
        upstream = _Upstream(lambda _: httpx.Response(200, json=[]))
        client = _client(upstream)

        await client.get_market_snapshot("usd", MarketFilters())

        assert "ids" not in upstream.requests[0].url.params

    async def test_invalid_currency(self) -> None:
        upstream = _Upstream(lambda _: httpx.Response(400, json={"error": "invalid vs_currency"}))
        client = _client(upstream)

        with pytest.raises(InvalidCurrencyError):
            await client.get_market_snapshot("xyz", MarketFilters())

    async def test_other_errors_are_transport_errors(self) -> None:
        upstream = _Upstream(lambda _: httpx.Response(500, text="oops"))
        client = _client(upstream)

        with pytest.raises(MarketDataTransportError):
            await client.get_market_snapshot("usd", MarketFilters())

    async def test_snapshot_is_never_cached(self, cache, fake_redis) -> None:
        upstream = _Upstream(lambda _: httpx.Response(200, json=[]))
        client = _client(upstream, cache)

        await client.get_market_snapshot("usd", MarketFilters())
        await client.get_market_snapshot("usd", MarketFilters())

        assert len(upstream.requests) == 2
        assert fake_redis.values == {}
