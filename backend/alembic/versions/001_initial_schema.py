"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Products
    op.create_table(
        "products",
        sa.Column("id", sa.String(20), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("size", sa.Text(), server_default=""),
        sa.Column("current_price", sa.Numeric(8, 2), nullable=False),
        sa.Column("category", sa.JSON()),
        sa.Column("source_site", sa.String(100), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_checked", sa.DateTime(timezone=True), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2)),
        sa.Column("unit_name", sa.String(10)),
        sa.Column("original_unit_quantity", sa.Numeric(12, 3)),
    )
    op.create_index("ix_products_name", "products", ["name"])

    # Price history, one row per accepted price change
    op.create_table(
        "price_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.String(20), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Numeric(8, 2), nullable=False),
    )
    op.create_index("ix_price_history_product_id", "price_history", ["product_id"])


def downgrade() -> None:
    op.drop_index("ix_price_history_product_id", table_name="price_history")
    op.drop_table("price_history")
    op.drop_index("ix_products_name", table_name="products")
    op.drop_table("products")
