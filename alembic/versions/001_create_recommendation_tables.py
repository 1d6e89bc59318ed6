"""Create recommendation tables: intraday_recommendations, swing_recommendations.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "intraday_recommendations",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("stock_name", sa.String(50), nullable=False),
        sa.Column("trade_side", sa.String(4), nullable=False),
        sa.Column("recommended_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("current_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("target1", sa.Numeric(14, 2), nullable=False),
        sa.Column("target2", sa.Numeric(14, 2), nullable=False),
        sa.Column("target3", sa.Numeric(14, 2), nullable=False),
        sa.Column("stoploss", sa.Numeric(14, 2), nullable=False),
        sa.Column("exit_reason", sa.String(20), nullable=True),
        sa.Column("exit_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("exited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("trade_side IN ('BUY', 'SELL')", name="ck_intraday_trade_side"),
        sa.CheckConstraint(
            "recommended_price > 0 AND current_price > 0 AND stoploss > 0 "
            "AND target1 > 0 AND target2 > 0 AND target3 > 0",
            name="ck_intraday_positive_prices",
        ),
        sa.CheckConstraint(
            "(exit_reason IS NULL) = (exited_at IS NULL)", name="ck_intraday_exit_fields"
        ),
    )
    op.create_index(
        "ix_intraday_recommendations_created_at", "intraday_recommendations", ["created_at"]
    )

    op.create_table(
        "swing_recommendations",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("stock_name", sa.String(50), nullable=False),
        sa.Column("recommended_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("current_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("target1", sa.Numeric(14, 2), nullable=False),
        sa.Column("target2", sa.Numeric(14, 2), nullable=False),
        sa.Column("stoploss", sa.Numeric(14, 2), nullable=False),
        sa.Column("allocation", sa.String(100), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("exit_reason", sa.String(20), nullable=True),
        sa.Column("exit_price", sa.Numeric(14, 2), nullable=True),
        sa.Column("exited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "recommended_price > 0 AND current_price > 0 AND stoploss > 0 "
            "AND target1 > 0 AND target2 > 0",
            name="ck_swing_positive_prices",
        ),
        sa.CheckConstraint(
            "(exit_reason IS NULL) = (exited_at IS NULL)", name="ck_swing_exit_fields"
        ),
    )
    op.create_index(
        "ix_swing_recommendations_created_at", "swing_recommendations", ["created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_swing_recommendations_created_at", table_name="swing_recommendations")
    op.drop_table("swing_recommendations")
    op.drop_index("ix_intraday_recommendations_created_at", table_name="intraday_recommendations")
    op.drop_table("intraday_recommendations")
