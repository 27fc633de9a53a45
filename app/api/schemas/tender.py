"""Tender schemas for the manual ingest endpoint."""
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.services.tender_normalizer import parse_number

MANUAL_SOURCE = "manual_ingest"


class TenderRowIn(BaseModel):
    """Already-canonical tender row posted by an operator."""

    model_config = ConfigDict(extra="allow")

    bid_no: str = Field(..., min_length=1, max_length=64)
    title: Optional[str] = None
    agency: Optional[str] = None
    demand_org: Optional[str] = None
    announced_at: Optional[date] = None
    budget: Optional[Decimal] = None
    base_amount: Optional[Decimal] = None
    estimated_price: Optional[Decimal] = None
    bid_ntce_no: Optional[str] = None
    bid_ntce_ord: Optional[str] = None
    source: Optional[str] = None
    scope: Optional[str] = None
    source_key: Optional[str] = None
    raw: Optional[Any] = None

    @field_validator("bid_no")
    @classmethod
    def strip_bid_no(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("bid_no must be a non-empty string")
        return v

    @field_validator("announced_at", mode="before")
    @classmethod
    def date_only(cls, v: Any) -> Any:
        """Only YYYY-MM-DD is accepted; anything else is stored as null."""
        if v is None or isinstance(v, date):
            return v
        s = str(v).strip()
        if len(s) != 10 or s[4] != "-" or s[7] != "-":
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            return None

    @field_validator("budget", "base_amount", "estimated_price", mode="before")
    @classmethod
    def amounts(cls, v: Any) -> Optional[Decimal]:
        return parse_number(v)

    def to_row(self) -> dict[str, Any]:
        """Upsert row; the posted object itself is kept as raw when none is given."""
        row = {name: getattr(self, name) for name in TenderRowIn.model_fields}
        row["source"] = row["source"] or MANUAL_SOURCE
        if row["raw"] is None:
            row["raw"] = self.model_dump(mode="json", exclude={"raw"})
        row["open_at"] = None
        return row


class TenderRowsIn(BaseModel):
    """Envelope only; each row is validated on its own so one bad row does not sink the batch."""

    rows: List[Any] = Field(..., min_length=1)

    def valid_rows(self) -> tuple[list[TenderRowIn], list[dict[str, Any]]]:
        """(rows that validate, one error entry per dropped row)."""
        valid: list[TenderRowIn] = []
        rejected: list[dict[str, Any]] = []
        for index, item in enumerate(self.rows):
            try:
                valid.append(TenderRowIn.model_validate(item))
            except ValidationError as e:
                first = e.errors()[0]
                rejected.append(
                    {"index": index, "field": ".".join(str(p) for p in first["loc"]), "error": first["msg"]}
                )
        return valid, rejected
