"""Cache key naming.

Targeted invalidation always goes through these functions, never through
prefix globbing, so an owner "1" can never evict the entry of owner "10".
HOLDINGS_CACHE_PATTERN is reserved for deliberate system-wide sweeps.
"""

PRICE_CACHE_PREFIX = "coin:price:"
HOLDINGS_CACHE_PREFIX = "user:holdings:"
HOLDINGS_CACHE_PATTERN = HOLDINGS_CACHE_PREFIX + "*"


def price_cache_key(asset_id: str) -> str:
    return f"{PRICE_CACHE_PREFIX}{asset_id}"


def holdings_cache_key(owner_id: str) -> str:
    return f"{HOLDINGS_CACHE_PREFIX}{owner_id}"
