"""Initial securities table: one text column per tracked indicator.

Revision ID: 001
Revises: None
Create Date: 2025-02-09 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

INDICATOR_COLUMNS = (
    "sma_strategy",
    "occ",
    "adaptive_supertrend",
    "range_filter_daily",
    "range_filter_weekly",
    "pmax",
    "shinohara_intensity_ratio",
    "oscillators_daily_weekly",
    "monthly_oscillator",
)


def upgrade() -> None:
    """
    PURPOSE: Create the securities table keyed by ticker.
    """
    op.create_table(
        "securities",
        sa.Column("ticker", sa.String(length=128), nullable=False),
        *[
            sa.Column(name, sa.Text(), nullable=False, server_default="")
            for name in INDICATOR_COLUMNS
        ],
        sa.Column(
            "date_updated",
            sa.DateTime(),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.PrimaryKeyConstraint("ticker"),
    )


def downgrade() -> None:
    op.drop_table("securities")
