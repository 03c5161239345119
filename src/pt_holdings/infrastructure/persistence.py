"""HoldingRepository — concrete implementation of HoldingRepositoryProtocol.

All queries use raw text() SQL. Every write is version-checked: the UPDATE
matches the version the caller read, and a result of 0 rows means another
writer got there first (EditConflictError).

Transaction ownership: the CALLER (HoldingStore) commits or rolls back.
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import TextClause

from src.pt_common.errors import EditConflictError
from src.pt_holdings.domain.models import HolderSnapshot, Holding

_HOLDING_COLUMNS = """
    asset_id, owner_id, symbol, quantity, avg_price, total_cost, pnl,
    version, created_at, updated_at
"""

# Public sort keys -> SQL columns. Only these ever reach ORDER BY.
SORT_COLUMNS: dict[str, str] = {
    "quantity": "quantity",
    "pnl": "pnl",
    "asset_id": "asset_id",
}

# ---------------------------------------------------------------------------
# SQL: refresh pipeline
# ---------------------------------------------------------------------------

_DISTINCT_ASSETS_SQL = text("""
    SELECT DISTINCT asset_id
    FROM holdings
    ORDER BY asset_id
""")

_LIST_HOLDERS_SQL = text("""
    SELECT owner_id, quantity, total_cost, version
    FROM holdings
    WHERE asset_id = :asset_id
""")

_UPDATE_PNL_SQL = text("""
    UPDATE holdings
    SET pnl = :pnl,
        version = version + 1,
        updated_at = NOW()
    WHERE asset_id = :asset_id
      AND owner_id = :owner_id
      AND version = :version
    RETURNING version
""")

# ---------------------------------------------------------------------------
# SQL: owner reads and writes
# ---------------------------------------------------------------------------

_GET_HOLDING_SQL = text(f"""
    SELECT {_HOLDING_COLUMNS}
    FROM holdings
    WHERE owner_id = :owner_id AND asset_id = :asset_id
""")

_INSERT_HOLDING_SQL = text(f"""
    INSERT INTO holdings
        (asset_id, owner_id, symbol, quantity, avg_price, total_cost, pnl)
    VALUES
        (:asset_id, :owner_id, :symbol, :quantity, :avg_price, :total_cost, :pnl)
    ON CONFLICT (owner_id, asset_id) DO NOTHING
    RETURNING {_HOLDING_COLUMNS}
""")

_UPDATE_HOLDING_SQL = text(f"""
    UPDATE holdings
    SET quantity = :quantity,
        avg_price = :avg_price,
        total_cost = :total_cost,
        pnl = :pnl,
        version = version + 1,
        updated_at = NOW()
    WHERE owner_id = :owner_id
      AND asset_id = :asset_id
      AND version = :version
    RETURNING {_HOLDING_COLUMNS}
""")

_DELETE_HOLDING_SQL = text("""
    DELETE FROM holdings
    WHERE owner_id = :owner_id AND asset_id = :asset_id
""")


def _list_for_owner_sql(sort_column: str, descending: bool) -> TextClause:
    column = SORT_COLUMNS[sort_column]
    direction = "DESC" if descending else "ASC"
    return text(f"""
        SELECT {_HOLDING_COLUMNS}
        FROM holdings
        WHERE owner_id = :owner_id
          AND (
              CAST(:search AS TEXT) IS NULL
              OR asset_id ILIKE CAST(:search AS TEXT) ESCAPE '\\'
              OR symbol ILIKE CAST(:search AS TEXT) ESCAPE '\\'
          )
        ORDER BY {column} {direction}, asset_id ASC
        LIMIT CAST(:limit AS BIGINT) OFFSET :offset
    """)


def _escape_like(term: str) -> str:
    """Make % _ and \\ match literally, like the in-memory search does."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------

def _row_to_holding(row: object) -> Holding:
    return Holding(
        asset_id=row.asset_id,  # type: ignore[attr-defined]
        owner_id=row.owner_id,  # type: ignore[attr-defined]
        symbol=row.symbol,  # type: ignore[attr-defined]
        quantity=Decimal(row.quantity),  # type: ignore[attr-defined]
        avg_price=Decimal(row.avg_price),  # type: ignore[attr-defined]
        total_cost=Decimal(row.total_cost),  # type: ignore[attr-defined]
        pnl=Decimal(row.pnl),  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_holder(row: object) -> HolderSnapshot:
    return HolderSnapshot(
        owner_id=row.owner_id,  # type: ignore[attr-defined]
        quantity=Decimal(row.quantity),  # type: ignore[attr-defined]
        total_cost=Decimal(row.total_cost),  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
    )


class HoldingRepository:
    """Concrete repository; every mutation is a single atomic statement."""

    async def list_distinct_asset_ids(self, db: AsyncSession) -> list[str]:
        result = await db.execute(_DISTINCT_ASSETS_SQL)
        return [row.asset_id for row in result.fetchall()]

    async def list_holders(
        self, db: AsyncSession, asset_id: str
    ) -> list[HolderSnapshot]:
        result = await db.execute(_LIST_HOLDERS_SQL, {"asset_id": asset_id})
        return [_row_to_holder(row) for row in result.fetchall()]

    async def update_pnl(
        self,
        db: AsyncSession,
        asset_id: str,
        holder: HolderSnapshot,
        pnl: Decimal,
    ) -> int:
        """Write one holder's PNL; returns the new version."""
        result = await db.execute(
            _UPDATE_PNL_SQL,
            {
                "pnl": pnl,
                "asset_id": asset_id,
                "owner_id": holder.owner_id,
                "version": holder.version,
            },
        )
        row = result.fetchone()
        if row is None:
            raise EditConflictError(holder.owner_id, asset_id)
        return int(row.version)

    async def get_holding(
        self, db: AsyncSession, owner_id: str, asset_id: str
    ) -> Holding | None:
        result = await db.execute(
            _GET_HOLDING_SQL, {"owner_id": owner_id, "asset_id": asset_id}
        )
        row = result.fetchone()
        return _row_to_holding(row) if row is not None else None

    async def insert_holding(self, db: AsyncSession, holding: Holding) -> Holding | None:
        """Insert a new holding; None means the owner already holds this asset."""
        result = await db.execute(
            _INSERT_HOLDING_SQL,
            {
                "asset_id": holding.asset_id,
                "owner_id": holding.owner_id,
                "symbol": holding.symbol,
                "quantity": holding.quantity,
                "avg_price": holding.avg_price,
                "total_cost": holding.total_cost,
                "pnl": holding.pnl,
            },
        )
        row = result.fetchone()
        return _row_to_holding(row) if row is not None else None

    async def update_holding(self, db: AsyncSession, holding: Holding) -> Holding:
        result = await db.execute(
            _UPDATE_HOLDING_SQL,
            {
                "quantity": holding.quantity,
                "avg_price": holding.avg_price,
                "total_cost": holding.total_cost,
                "pnl": holding.pnl,
                "owner_id": holding.owner_id,
                "asset_id": holding.asset_id,
                "version": holding.version,
            },
        )
        row = result.fetchone()
        if row is None:
            raise EditConflictError(holding.owner_id, holding.asset_id)
        return _row_to_holding(row)

    async def delete_holding(
        self, db: AsyncSession, owner_id: str, asset_id: str
    ) -> bool:
        result = await db.execute(
            _DELETE_HOLDING_SQL, {"owner_id": owner_id, "asset_id": asset_id}
        )
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def list_for_owner(
        self,
        db: AsyncSession,
        owner_id: str,
        search: str | None,
        sort_column: str,
        descending: bool,
        limit: int | None,
        offset: int,
    ) -> list[Holding]:
        result = await db.execute(
            _list_for_owner_sql(sort_column, descending),
            {
                "owner_id": owner_id,
                "search": f"%{_escape_like(search)}%" if search else None,
                "limit": limit,
                "offset": offset,
            },
        )
        return [_row_to_holding(row) for row in result.fetchall()]
