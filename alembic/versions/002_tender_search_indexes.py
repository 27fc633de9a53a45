"""Trigram indexes for substring search on tenders.

Revision ID: 002
Revises: 001
Create Date: 2026-02-08

PostgreSQL only. Adds pg_trgm GIN indexes on title, agency and bid_no so the
ILIKE '%q%' search in GET /api/bids does not scan the table.
"""
from alembic import op


revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None

_INDEXES = {
    "ix_tenders_title_trgm": "title",
    "ix_tenders_agency_trgm": "agency",
    "ix_tenders_bid_no_trgm": "bid_no",
}


def upgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        # SQLite: plain scan for LIKE
        return

    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
    for name, column in _INDEXES.items():
        op.execute(
            f"CREATE INDEX IF NOT EXISTS {name} ON tenders USING GIN ({column} gin_trgm_ops)"
        )


def downgrade() -> None:
    if op.get_bind().dialect.name != "postgresql":
        return
    for name in _INDEXES:
        op.execute(f"DROP INDEX IF EXISTS {name}")
