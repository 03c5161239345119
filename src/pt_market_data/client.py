"""MarketDataClient — current prices and market listings from the external API.

Price lookups are read-through cached under coin:price:<asset_id> for a fixed
5 minutes. The cache absorbs bursts of interactive lookups; it is unrelated to
the refresh interval of the pipeline. Listings are never cached.

Upstream errors map onto the app error taxonomy:
  - 404 and other 4xx on a price lookup -> AssetNotFoundError
  - connection/timeout, 429, 5xx, undecodable body -> MarketDataTransportError
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter

from config.settings import settings
from src.pt_cache.cache import Cache
from src.pt_cache.keys import price_cache_key
from src.pt_common.errors import (
    AssetNotFoundError,
    InvalidCurrencyError,
    MarketDataTransportError,
)
from src.pt_common.redis_client import get_redis
from src.pt_market_data.schemas import CachedPrice, CoinMarketData, MarketFilters

logger = logging.getLogger(__name__)

PRICE_CACHE_TTL = timedelta(minutes=5)

_API_KEY_HEADER = "x-cg-demo-api-key"
_MARKET_LIST_ADAPTER = TypeAdapter(list[CoinMarketData])


def _is_upstream_unavailable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class MarketDataClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: Cache | None = None,
        quote_currency: str = settings.MARKET_QUOTE_CURRENCY,
    ) -> None:
        self._http = http
        self._cache = cache
        self._quote_currency = quote_currency

    async def get_current_price_and_symbol(self, asset_id: str) -> tuple[Decimal, str]:
        """Return (price, symbol) for one asset, from cache when fresh."""
        key = price_cache_key(asset_id)
        if self._cache is not None:
            cached = await self._cache.get(key, CachedPrice)
            if cached is not None:
                return cached.price, cached.symbol

        response = await self._request(f"/coins/{quote(asset_id, safe='')}")
        if response.status_code != httpx.codes.OK:
            if _is_upstream_unavailable(response.status_code):
                raise MarketDataTransportError(
                    f"status {response.status_code} for {asset_id}"
                )
            raise AssetNotFoundError(asset_id)

        try:
            body: dict[str, Any] = response.json(parse_float=Decimal)
            symbol = str(body["symbol"])
            price = Decimal(str(body["market_data"]["current_price"][self._quote_currency]))
        except (ValueError, KeyError, TypeError, ArithmeticError) as exc:
            raise MarketDataTransportError(f"cannot decode price for {asset_id}: {exc}") from exc

        if self._cache is not None:
            await self._cache.set(key, CachedPrice(price=price, symbol=symbol), PRICE_CACHE_TTL)
        return price, symbol

    async def get_market_snapshot(
        self, currency: str, filters: MarketFilters
    ) -> list[CoinMarketData]:
        """Paged market listing, passed straight through for interactive browsing."""
        params = {"vs_currency": currency, **filters.to_query()}
        response = await self._request("/coins/markets", params=params)
        if response.status_code != httpx.codes.OK:
            if "invalid vs_currency" in response.text:
                raise InvalidCurrencyError(currency)
            raise MarketDataTransportError(
                f"API error (status {response.status_code}): {response.text[:200]}"
            )

        try:
            return _MARKET_LIST_ADAPTER.validate_json(response.content)
        except ValueError as exc:
            raise MarketDataTransportError(f"cannot decode market listing: {exc}") from exc

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self, path: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        try:
            return await self._http.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning("market API request %s failed: %s", path, exc)
            raise MarketDataTransportError(str(exc) or type(exc).__name__) from exc


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.MARKET_API_BASE_URL,
        headers={
            "accept": "application/json",
            _API_KEY_HEADER: settings.MARKET_API_KEY,
        },
        timeout=settings.MARKET_API_TIMEOUT_SECONDS,
    )


_client: MarketDataClient | None = None


async def get_market_data_client() -> MarketDataClient:
    """Get or create the process-wide client (also a FastAPI dependency)."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = MarketDataClient(build_http_client(), Cache(await get_redis()))
    return _client


async def close_market_data_client() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None
