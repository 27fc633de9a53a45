"""Tender read endpoints: keyset-paginated list + detail."""
from datetime import date, datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.errors import InputValidationError, NotFoundError
from app.db.crud.tenders import (
    ORDER_ANNOUNCED,
    ORDER_UPDATED,
    TenderCursor,
    get_tender,
    list_tenders,
)
from app.db.session import get_db

router = APIRouter(prefix="/bids", tags=["bids"])


def _parse_cursor_date(value: Optional[str]) -> Optional[date]:
    if not value or value == "null":
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise InputValidationError(f"cursorAnnouncedAt must be YYYY-MM-DD, got {value!r}") from None


def _parse_cursor_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value or value == "null":
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InputValidationError(f"cursorUpdatedAt must be an ISO timestamp, got {value!r}") from None
    return parsed.replace(tzinfo=None)


@router.get("")
def list_bids(
    source: Optional[str] = Query(None, description="Provenance filter, e.g. g2b_data_go_kr"),
    scope: Optional[str] = Query(None, description="CITY, EDU or OTHER (case-insensitive); 'all' disables it"),
    q: Optional[str] = Query(None, description="Substring match on title, agency, bid_no"),
    limit: int = Query(20, ge=1, le=100),
    order: str = Query(ORDER_ANNOUNCED, pattern=f"^({ORDER_ANNOUNCED}|{ORDER_UPDATED})$"),
    cursor_announced_at: Optional[str] = Query(None, alias="cursorAnnouncedAt"),
    cursor_updated_at: Optional[str] = Query(None, alias="cursorUpdatedAt"),
    cursor_bid_no: Optional[str] = Query(None, alias="cursorBidNo"),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Tenders ordered by (announced_at DESC, bid_no DESC), or (updated_at DESC, bid_no DESC)
    with order=updated. Pass the returned nextCursor fields back for the next page.
    """
    cursor = None
    if cursor_bid_no:
        cursor = TenderCursor(
            bid_no=cursor_bid_no,
            announced_at=_parse_cursor_date(cursor_announced_at),
            updated_at=_parse_cursor_datetime(cursor_updated_at),
        )

    rows, next_cursor = list_tenders(
        db,
        source=source,
        scope=scope,
        q=q,
        limit=limit,
        cursor=cursor,
        order=order,
    )
    return {
        "ok": True,
        "filters": {"source": source, "scope": scope, "q": q, "order": order},
        "count": len(rows),
        "data": [row.to_dict() for row in rows],
        "nextCursor": next_cursor.to_dict(order) if next_cursor else None,
    }


@router.get("/{bid_no}")
def get_bid(bid_no: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    """One tender including its raw upstream payload."""
    tender = get_tender(db, bid_no)
    if tender is None:
        raise NotFoundError(f"Tender {bid_no} not found")
    return {"ok": True, "data": {**tender.to_dict(), "raw": tender.raw}}
