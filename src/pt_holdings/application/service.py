"""HoldingStore — owns persisted holdings and the aggregate caches derived from them.

Write paths commit per statement (`commit()` on success, `rollback()` on
failure) and then invalidate the affected user:holdings:<owner_id> entries.
Cache work always happens after the commit and never undoes it: a failed
invalidation leaves a stale entry, which is preferred over a failed write.

Cache population happens only on insert (add_holding), and is abandoned if
another write for the owner lands while the list is being cached. Reads never
populate, so a miss keeps reading from PostgreSQL until the next insert.
"""

import logging
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_cache.cache import Cache
from src.pt_cache.keys import HOLDINGS_CACHE_PATTERN, holdings_cache_key
from src.pt_common.errors import EditConflictError, HoldingExistsError, HoldingNotFoundError
from src.pt_holdings.application.schemas import HoldingFilters
from src.pt_holdings.domain.models import Holding, RecomputeResult, compute_pnl
from src.pt_holdings.domain.repository import HoldingRepositoryProtocol
from src.pt_holdings.infrastructure.persistence import HoldingRepository

logger = logging.getLogger(__name__)


def apply_filters(holdings: list[Holding], filters: HoldingFilters) -> list[Holding]:
    """Same search/sort/page semantics as the SQL listing, applied in memory."""
    if filters.search:
        needle = filters.search.lower()
        holdings = [
            h for h in holdings
            if needle in h.asset_id.lower() or needle in h.symbol.lower()
        ]
    # Two stable sorts: asset_id ascending breaks ties on the requested column
    ordered = sorted(holdings, key=lambda h: h.asset_id)
    ordered.sort(key=lambda h: getattr(h, filters.sort_column), reverse=filters.descending)
    return ordered[filters.offset:filters.offset + filters.limit]


def _row_versions(holdings: list[Holding]) -> set[tuple[str, int]]:
    return {(h.asset_id, h.version) for h in holdings}


class HoldingStore:
    def __init__(
        self, cache: Cache, repo: HoldingRepositoryProtocol | None = None
    ) -> None:
        self._cache = cache
        self._repo: HoldingRepositoryProtocol = repo or HoldingRepository()

    # ------------------------------------------------------------------
    # Refresh pipeline
    # ------------------------------------------------------------------

    async def discover_tracked_assets(self, db: AsyncSession) -> list[str]:
        """Distinct asset ids across all holdings, read live at call time."""
        return await self._repo.list_distinct_asset_ids(db)

    async def recompute_pnl(
        self, db: AsyncSession, asset_id: str, current_price: Decimal
    ) -> RecomputeResult:
        """Set pnl = quantity * price - total_cost for every holder of asset_id.

        Each row is written in its own transaction. A failed row (write error
        or a version bumped by a concurrent user update) is logged and skipped;
        the next scheduled refresh picks it up again.
        """
        holders = await self._repo.list_holders(db, asset_id)
        result = RecomputeResult(
            asset_id=asset_id, owners=tuple(h.owner_id for h in holders)
        )

        for holder in holders:
            pnl = compute_pnl(holder.quantity, holder.total_cost, current_price)
            try:
                await self._repo.update_pnl(db, asset_id, holder, pnl)
                await db.commit()
            except (EditConflictError, SQLAlchemyError) as exc:
                await db.rollback()
                result.failed += 1
                logger.warning(
                    "skipping PNL update for %s/%s: %s", holder.owner_id, asset_id, exc
                )
                continue
            result.updated += 1

        # Any holder of this asset may now have a stale aggregate
        await self._cache.delete_many(holdings_cache_key(owner) for owner in result.owners)
        logger.info(
            "recomputed PNL for %s at %s: %d updated, %d failed",
            asset_id, current_price, result.updated, result.failed,
        )
        return result

    async def invalidate_all_aggregates(self) -> int:
        """Drop every owner's aggregate entry in one sweep."""
        return await self._cache.invalidate(HOLDINGS_CACHE_PATTERN)

    # ------------------------------------------------------------------
    # Owner reads and writes
    # ------------------------------------------------------------------

    async def get_holdings_for_owner(
        self, db: AsyncSession, owner_id: str, filters: HoldingFilters
    ) -> list[Holding]:
        cached = await self._cache.get(holdings_cache_key(owner_id), list[Holding])
        if cached is not None:
            return apply_filters(cached, filters)
        return await self._repo.list_for_owner(
            db,
            owner_id,
            filters.search,
            filters.sort_column,
            filters.descending,
            filters.limit,
            filters.offset,
        )

    async def get_holding(
        self, db: AsyncSession, owner_id: str, asset_id: str
    ) -> Holding:
        holding = await self._repo.get_holding(db, owner_id, asset_id)
        if holding is None:
            raise HoldingNotFoundError(owner_id, asset_id)
        return holding

    async def add_holding(self, db: AsyncSession, holding: Holding) -> Holding:
        try:
            inserted = await self._repo.insert_holding(db, holding)
            if inserted is None:
                raise HoldingExistsError(holding.asset_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._store_aggregate(db, holding.owner_id)
        return inserted

    async def update_holding(self, db: AsyncSession, holding: Holding) -> Holding:
        """Version-checked write; EditConflictError if the row moved underneath us."""
        try:
            updated = await self._repo.update_holding(db, holding)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._cache.delete(holdings_cache_key(holding.owner_id))
        return updated

    async def delete_holding(self, db: AsyncSession, owner_id: str, asset_id: str) -> None:
        try:
            deleted = await self._repo.delete_holding(db, owner_id, asset_id)
            if not deleted:
                raise HoldingNotFoundError(owner_id, asset_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._cache.delete(holdings_cache_key(owner_id))

    async def _store_aggregate(self, db: AsyncSession, owner_id: str) -> None:
        """Cache the owner's full list, unless a concurrent write moved it.

        A write committed after our read may already have deleted the key
        before our set lands, so the rows are read again afterwards and the
        entry is dropped if any row appeared, vanished or changed version.
        """
        key = holdings_cache_key(owner_id)
        try:
            holdings = await self._list_all(db, owner_id)
            await self._cache.set(key, holdings)
            current = await self._list_all(db, owner_id)
        except SQLAlchemyError as exc:
            logger.warning("could not refresh aggregate cache for %s: %s", owner_id, exc)
            await self._cache.delete(key)
            return
        if _row_versions(current) != _row_versions(holdings):
            logger.info("aggregate for %s changed while caching it, dropping entry", owner_id)
            await self._cache.delete(key)

    async def _list_all(self, db: AsyncSession, owner_id: str) -> list[Holding]:
        return await self._repo.list_for_owner(db, owner_id, None, "asset_id", False, None, 0)
