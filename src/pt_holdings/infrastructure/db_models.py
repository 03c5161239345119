"""SQLAlchemy ORM model for pt_holdings.

Maps to the holdings table created by Alembic migration 002.
DO NOT add/remove columns here without a corresponding migration.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Index, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from src.pt_common.database import Base


class HoldingORM(Base):
    __tablename__ = "holdings"
    __table_args__ = (
        UniqueConstraint("owner_id", "asset_id", name="uq_holdings_owner_asset"),
        Index("idx_holdings_asset", "asset_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    asset_id: Mapped[str] = mapped_column(String(100), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    avg_price: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    pnl: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False, default=0)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
