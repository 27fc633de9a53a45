"""Public procurement tender (나라장터 입찰공고) model."""
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import Date, DateTime, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from app.models.base import Base


def utcnow() -> datetime:
    """Naive UTC with microseconds; the single clock for created_at and updated_at."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Tender(Base):
    """
    One bid announcement, keyed by bid_no ("{bidNtceNo}-{bidNtceOrd}").
    Table name: tenders.
    """

    __tablename__ = "tenders"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    # --- Natural key: sole upsert conflict target ---
    bid_no: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    bid_ntce_no: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    bid_ntce_ord: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # --- Descriptive metadata ---
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    agency: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    demand_org: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    announced_at: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    open_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # --- Amounts (KRW) ---
    budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    base_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    estimated_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)

    # --- Provenance / classification ---
    source: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    scope: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    source_key: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    raw: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    # Keyset pagination orderings
    __table_args__ = (
        Index("ix_tenders_announced_bid_no", "announced_at", "bid_no"),
        Index("ix_tenders_updated_bid_no", "updated_at", "bid_no"),
    )

    def to_dict(self) -> dict[str, Any]:
        """API shape (raw payload excluded)."""
        return {
            "bid_no": self.bid_no,
            "bid_ntce_no": self.bid_ntce_no,
            "bid_ntce_ord": self.bid_ntce_ord,
            "title": self.title,
            "agency": self.agency,
            "demand_org": self.demand_org,
            "announced_at": self.announced_at.isoformat() if self.announced_at else None,
            "open_at": self.open_at.isoformat() if self.open_at else None,
            "budget": _num(self.budget),
            "base_amount": _num(self.base_amount),
            "estimated_price": _num(self.estimated_price),
            "source": self.source,
            "scope": self.scope,
            "source_key": self.source_key,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _num(value: Optional[Decimal]) -> Optional[float | int]:
    if value is None:
        return None
    return int(value) if value == value.to_integral_value() else float(value)
