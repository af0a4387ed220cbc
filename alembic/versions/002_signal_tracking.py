"""Primary signal, analyst price target and signal transition timestamp.

Additive only: existing rows get signal='' and null target/transition.

Revision ID: 002
Revises: 001
Create Date: 2025-03-02 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    PURPOSE: Add the primary signal column and its transition timestamp.
    """
    with op.batch_alter_table("securities") as batch_op:
        batch_op.add_column(sa.Column("signal", sa.Text(), nullable=False, server_default=""))
        batch_op.add_column(sa.Column("analyst_price_target", sa.Float(), nullable=True))
        batch_op.add_column(sa.Column("signal_changed_at", sa.DateTime(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("securities") as batch_op:
        batch_op.drop_column("signal_changed_at")
        batch_op.drop_column("analyst_price_target")
        batch_op.drop_column("signal")
