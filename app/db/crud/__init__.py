"""CRUD operations."""
from app.db.crud.tenders import (
    TenderCursor,
    enrich_budgets,
    get_tender,
    list_tenders,
    upsert_tenders,
)

__all__ = [
    "TenderCursor",
    "enrich_budgets",
    "get_tender",
    "list_tenders",
    "upsert_tenders",
]
