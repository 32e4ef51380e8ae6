from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_menu_cache_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tenant_menu_data",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.String(255), nullable=False),
        sa.Column("restaurant_name", sa.String(), nullable=False),
        sa.Column("cuisine", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("hours", sa.String(), nullable=True),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("items_json", sa.Text(), nullable=False),
        sa.Column("special_offers_json", sa.Text(), nullable=False),
        sa.Column("ai_context", sa.Text(), nullable=True),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("data_source", sa.String(20), nullable=False),
        sa.Column("last_scraped", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scraping_history_json", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_tenant_menu_data_tenant_id", "tenant_menu_data", ["tenant_id"], unique=True)

    op.create_table(
        "menu_submissions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("tenant_id", sa.String(255), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("items_added", sa.Integer(), nullable=False),
        sa.Column("processing_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_menu_submissions_tenant_id", "menu_submissions", ["tenant_id"])


def downgrade() -> None:
    op.drop_index("ix_menu_submissions_tenant_id", table_name="menu_submissions")
    op.drop_table("menu_submissions")
    op.drop_index("ix_tenant_menu_data_tenant_id", table_name="tenant_menu_data")
    op.drop_table("tenant_menu_data")
