"""Baseline: tenders + import_runs.

Revision ID: 001
Revises: (none)
Create Date: 2026-02-08 20:30:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── tenders ──────────────────────────────────────────────────────────
    op.create_table(
        "tenders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("bid_no", sa.String(length=64), nullable=False),
        sa.Column("bid_ntce_no", sa.String(length=40), nullable=True),
        sa.Column("bid_ntce_ord", sa.String(length=10), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("agency", sa.String(length=255), nullable=True),
        sa.Column("demand_org", sa.String(length=255), nullable=True),
        sa.Column("announced_at", sa.Date(), nullable=True),
        sa.Column("open_at", sa.DateTime(), nullable=True),
        sa.Column("budget", sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column("base_amount", sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column("estimated_price", sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column("source", sa.String(length=50), nullable=True),
        sa.Column("scope", sa.String(length=100), nullable=True),
        sa.Column("source_key", sa.String(length=100), nullable=True),
        sa.Column("raw", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bid_no"),
    )
    op.create_index("ix_tenders_source", "tenders", ["source"])
    op.create_index("ix_tenders_scope", "tenders", ["scope"])
    op.create_index("ix_tenders_announced_bid_no", "tenders", ["announced_at", "bid_no"])
    op.create_index("ix_tenders_updated_bid_no", "tenders", ["updated_at", "bid_no"])

    # ── import_runs ──────────────────────────────────────────────────────
    op.create_table(
        "import_runs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors_json", sa.JSON(), nullable=True),
        sa.Column("search_criteria_json", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_runs_source", "import_runs", ["source"])
    op.create_index("ix_import_runs_started_at", "import_runs", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_import_runs_started_at", table_name="import_runs")
    op.drop_index("ix_import_runs_source", table_name="import_runs")
    op.drop_table("import_runs")
    op.drop_index("ix_tenders_updated_bid_no", table_name="tenders")
    op.drop_index("ix_tenders_announced_bid_no", table_name="tenders")
    op.drop_index("ix_tenders_scope", table_name="tenders")
    op.drop_index("ix_tenders_source", table_name="tenders")
    op.drop_table("tenders")
