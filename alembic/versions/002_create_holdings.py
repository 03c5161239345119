"""002: create holdings table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE holdings (
            id          BIGSERIAL       PRIMARY KEY,
            asset_id    VARCHAR(100)    NOT NULL,
            owner_id    VARCHAR(64)     NOT NULL,
            symbol      VARCHAR(32)     NOT NULL,
            quantity    NUMERIC(38, 18) NOT NULL,
            avg_price   NUMERIC(38, 18) NOT NULL,
            total_cost  NUMERIC(38, 18) NOT NULL,
            pnl         NUMERIC(38, 18) NOT NULL DEFAULT 0,
            version     BIGINT          NOT NULL DEFAULT 1,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_holdings_owner_asset     UNIQUE (owner_id, asset_id),
            CONSTRAINT ck_holdings_quantity_gt_0   CHECK (quantity > 0),
            CONSTRAINT ck_holdings_avg_price_gt_0  CHECK (avg_price > 0),
            CONSTRAINT ck_holdings_total_cost_gt_0 CHECK (total_cost > 0)
        );
    """)
    # Discovery (SELECT DISTINCT asset_id) and the per-asset holder sweep
    op.execute("CREATE INDEX idx_holdings_asset ON holdings (asset_id);")
    op.execute("""
        CREATE TRIGGER trg_holdings_updated_at
            BEFORE UPDATE ON holdings
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute(
        "COMMENT ON COLUMN holdings.pnl IS "
        "'quantity * price - total_cost as of the last refresh; derived, never hand-edited';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS holdings CASCADE;")
