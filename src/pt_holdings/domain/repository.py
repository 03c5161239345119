"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_holdings.domain.models import HolderSnapshot, Holding


class HoldingRepositoryProtocol(Protocol):
    async def list_distinct_asset_ids(self, db: AsyncSession) -> list[str]: ...

    async def list_holders(
        self, db: AsyncSession, asset_id: str
    ) -> list[HolderSnapshot]: ...

    async def update_pnl(
        self,
        db: AsyncSession,
        asset_id: str,
        holder: HolderSnapshot,
        pnl: Decimal,
    ) -> int: ...

    async def get_holding(
        self, db: AsyncSession, owner_id: str, asset_id: str
    ) -> Holding | None: ...

    async def insert_holding(self, db: AsyncSession, holding: Holding) -> Holding | None: ...

    async def update_holding(self, db: AsyncSession, holding: Holding) -> Holding: ...

    async def delete_holding(
        self, db: AsyncSession, owner_id: str, asset_id: str
    ) -> bool: ...

    async def list_for_owner(
        self,
        db: AsyncSession,
        owner_id: str,
        search: str | None,
        sort_column: str,
        descending: bool,
        limit: int | None,
        offset: int,
    ) -> list[Holding]: ...
