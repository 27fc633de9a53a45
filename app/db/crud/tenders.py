"""CRUD operations for tenders: batch upsert, enrichment, keyset listing."""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StorageError
from app.models.tender import Tender, utcnow
from app.services.tender_normalizer import extract_budgets

logger = logging.getLogger(__name__)

AMOUNT_COLUMNS = ("budget", "base_amount", "estimated_price")
UPSERT_COLUMNS = (
    "bid_no",
    "bid_ntce_no",
    "bid_ntce_ord",
    "title",
    "agency",
    "demand_org",
    "announced_at",
    "open_at",
    "budget",
    "base_amount",
    "estimated_price",
    "source",
    "scope",
    "source_key",
    "raw",
)

ORDER_ANNOUNCED = "announced"
ORDER_UPDATED = "updated"


def _dialect_insert(db: Session):
    name = db.get_bind().dialect.name
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise StorageError(f"Upsert not supported for dialect {name!r}")
    return insert


def dedupe_by_bid_no(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep the last row per bid_no, in first-seen order."""
    by_key: dict[str, dict[str, Any]] = {}
    for row in rows:
        by_key[row["bid_no"]] = row
    return list(by_key.values())


def upsert_tenders(db: Session, rows: list[dict[str, Any]]) -> tuple[int, int]:
    """
    Insert-or-update one page of canonical rows in a single statement.
    Conflict target is bid_no; amount columns keep their stored value when the
    new one is null. Returns (created, updated). Raises StorageError after rollback.
    """
    batch = dedupe_by_bid_no([r for r in rows if r.get("bid_no")])
    if not batch:
        return 0, 0

    now = utcnow()
    values = [
        {**{col: row.get(col) for col in UPSERT_COLUMNS}, "created_at": now, "updated_at": now}
        for row in batch
    ]
    keys = [v["bid_no"] for v in values]

    try:
        existing = set(db.scalars(select(Tender.bid_no).where(Tender.bid_no.in_(keys))).all())

        insert = _dialect_insert(db)
        stmt = insert(Tender.__table__).values(values)
        excluded = stmt.excluded
        table = Tender.__table__
        set_: dict[str, Any] = {
            col: excluded[col] for col in UPSERT_COLUMNS if col != "bid_no" and col not in AMOUNT_COLUMNS
        }
        for col in AMOUNT_COLUMNS:
            set_[col] = func.coalesce(excluded[col], table.c[col])
        set_["updated_at"] = excluded["updated_at"]
        stmt = stmt.on_conflict_do_update(index_elements=["bid_no"], set_=set_)

        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        orig = getattr(e, "orig", None)
        hint = getattr(getattr(orig, "diag", None), "message_hint", None)
        logger.error("Tender upsert failed for %d rows: %s", len(values), e)
        raise StorageError(str(orig or e), hint=hint) from e

    updated = len(existing)
    return len(values) - updated, updated


def enrich_budgets(db: Session, limit: int = 50) -> dict[str, Any]:
    """
    Fill null amount columns from the stored raw payload.
    Populated columns are never touched.
    """
    stmt = (
        select(Tender)
        .where(or_(Tender.base_amount.is_(None), Tender.budget.is_(None), Tender.estimated_price.is_(None)))
        .order_by(Tender.updated_at.desc(), Tender.bid_no.desc())
        .limit(limit)
    )
    try:
        candidates = db.scalars(stmt).all()
        updated_bid_nos: list[str] = []
        for tender in candidates:
            derived = extract_budgets(tender.raw)
            patch = {
                col: derived[col]
                for col in AMOUNT_COLUMNS
                if getattr(tender, col) is None and derived.get(col) is not None
            }
            if not patch:
                continue
            for col, value in patch.items():
                setattr(tender, col, value)
            tender.updated_at = utcnow()
            updated_bid_nos.append(tender.bid_no)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(str(getattr(e, "orig", None) or e)) from e

    return {"processed": len(candidates), "updated": len(updated_bid_nos), "updatedBidNos": updated_bid_nos}


@dataclass(frozen=True)
class TenderCursor:
    """Last row of a page: its recency value and bid_no."""

    bid_no: str
    announced_at: Optional[date] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, tender: Tender) -> "TenderCursor":
        return cls(bid_no=tender.bid_no, announced_at=tender.announced_at, updated_at=tender.updated_at)

    def to_dict(self, order: str = ORDER_ANNOUNCED) -> dict[str, Optional[str]]:
        if order == ORDER_UPDATED:
            return {
                "cursorUpdatedAt": self.updated_at.isoformat() if self.updated_at else None,
                "cursorBidNo": self.bid_no,
            }
        return {
            "cursorAnnouncedAt": self.announced_at.isoformat() if self.announced_at else None,
            "cursorBidNo": self.bid_no,
        }


def _after_cursor(cursor: TenderCursor, order: str):
    """Rows strictly after the cursor in (recency DESC NULLS LAST, bid_no DESC)."""
    if order == ORDER_UPDATED:
        if cursor.updated_at is None:
            return Tender.bid_no < cursor.bid_no
        return or_(
            Tender.updated_at < cursor.updated_at,
            and_(Tender.updated_at == cursor.updated_at, Tender.bid_no < cursor.bid_no),
        )
    if cursor.announced_at is None:
        # Already in the null tail
        return and_(Tender.announced_at.is_(None), Tender.bid_no < cursor.bid_no)
    return or_(
        Tender.announced_at < cursor.announced_at,
        and_(Tender.announced_at == cursor.announced_at, Tender.bid_no < cursor.bid_no),
        Tender.announced_at.is_(None),
    )


def list_tenders(
    db: Session,
    source: Optional[str] = None,
    scope: Optional[str] = None,
    q: Optional[str] = None,
    limit: int = 20,
    cursor: Optional[TenderCursor] = None,
    order: str = ORDER_ANNOUNCED,
) -> tuple[list[Tender], Optional[TenderCursor]]:
    """
    One keyset page. Returns (rows, next_cursor); next_cursor is None on the last page.
    """
    stmt = select(Tender)

    if source:
        stmt = stmt.where(Tender.source == source)
    if scope and scope.strip().lower() != "all":
        stmt = stmt.where(func.upper(Tender.scope) == scope.strip().upper())
    if q and q.strip():
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(
            or_(
                Tender.title.ilike(pattern),
                Tender.agency.ilike(pattern),
                Tender.bid_no.ilike(pattern),
            )
        )
    if cursor is not None:
        stmt = stmt.where(_after_cursor(cursor, order))

    if order == ORDER_UPDATED:
        stmt = stmt.order_by(Tender.updated_at.desc(), Tender.bid_no.desc())
    else:
        stmt = stmt.order_by(Tender.announced_at.desc().nulls_last(), Tender.bid_no.desc())

    try:
        rows = list(db.scalars(stmt.limit(limit + 1)).all())
    except SQLAlchemyError as e:
        raise StorageError(str(getattr(e, "orig", None) or e)) from e

    has_more = len(rows) > limit
    rows = rows[:limit]
    next_cursor = TenderCursor.from_row(rows[-1]) if has_more and rows else None
    return rows, next_cursor


def get_tender(db: Session, bid_no: str) -> Optional[Tender]:
    return db.scalars(select(Tender).where(Tender.bid_no == bid_no)).first()


def count_tenders(db: Session) -> int:
    return int(db.scalar(select(func.count()).select_from(Tender)) or 0)
