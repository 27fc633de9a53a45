"""Map raw BidPublicInfoService items to canonical tender rows.

The same logical field arrives under several names and casings depending on
the operation (``bidNtceNo`` / ``bidntceno``, ``bscAmt`` / ``baseAmt``), so each
canonical attribute is described by an ordered tuple of candidate keys and
looked up case-insensitively. The first candidate with a usable value wins.
"""
import logging
import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

G2B_SOURCE = "g2b_data_go_kr"

# --- Candidate keys, in priority order ---
BID_NTCE_NO_KEYS = ("bidNtceNo",)
BID_NTCE_ORD_KEYS = ("bidNtceOrd",)
TITLE_KEYS = ("bidNtceNm", "ntceNm")
AGENCY_KEYS = ("ntceInsttNm", "dminsttNm")
DEMAND_ORG_KEYS = ("dmndInsttNm", "dminsttNm")
ANNOUNCED_AT_KEYS = ("bidNtceDt", "ntceDt", "rgstDt")
OPEN_AT_KEYS = ("opengDt",)
BASE_AMOUNT_KEYS = ("bscAmt", "baseAmt", "base_amount")
ESTIMATED_PRICE_KEYS = ("presmptPrce", "estmtdAmt", "estimated_price")
BUDGET_KEYS = ("asignBdgtAmt", "budget")

# --- Scope classification by announcing agency ---
SCOPE_EDU = "EDU"
SCOPE_CITY = "CITY"
SCOPE_OTHER = "OTHER"
EDU_AGENCY_MARKERS = ("교육청", "교육지원청", "학교", "유치원")
CITY_AGENCY_PREFIXES = ("경기도 고양시", "고양시")
CITY_AGENCY_MARKERS = ("고양시 ", "덕양구", "일산동구", "일산서구")

_COMPACT_TS = re.compile(r"^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})?$")
_COMPACT_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_SEPARATED_TS = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})(?:[ T](\d{2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?)?(?:Z|[+-]\d{2}:?\d{2})?$"
)


def parse_number(value: Any) -> Optional[Decimal]:
    """
    "1,234,500" -> Decimal(1234500). Empty, non-numeric or non-finite input -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        d = Decimal(value)
        return d if d.is_finite() else None
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else None
    s = str(value).replace(",", "").strip()
    if not s:
        return None
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Accepts "202602042351", "20260204235147", "20260204",
    "2026-02-04", "2026-02-04 23:51" and "2026-02-04 23:51:47".
    A fraction or UTC offset after the seconds is ignored; other trailing text is not.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    s = str(value).strip()
    if not s:
        return None

    parts: Optional[tuple] = None
    m = _COMPACT_TS.match(s)
    if m:
        parts = m.groups()
    else:
        m = _COMPACT_DATE.match(s)
        if m:
            parts = m.groups() + (None, None, None)
        else:
            m = _SEPARATED_TS.match(s)
            if m:
                parts = m.groups()
    if parts is None:
        return None

    try:
        return datetime(*(int(p) if p else 0 for p in parts))
    except ValueError:
        return None


def to_date_only(value: Any) -> Optional[date]:
    ts = parse_timestamp(value)
    return ts.date() if ts else None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


class FieldLookup:
    """Case-insensitive view over one raw item."""

    def __init__(self, item: dict[str, Any]):
        self._by_lower = {str(k).lower(): v for k, v in item.items()}

    def first(self, keys: tuple[str, ...], parse: Callable[[Any], Any] = _clean_str) -> Any:
        """First candidate whose parsed value is not None."""
        for key in keys:
            raw = self._by_lower.get(key.lower())
            if raw is None:
                continue
            parsed = parse(raw)
            if parsed is not None:
                return parsed
        return None


def classify_scope(agency: Optional[str]) -> str:
    """
    EDU for education offices and schools, CITY for Goyang city hall and its
    districts (덕양구, 일산동구, 일산서구), OTHER otherwise. Education wins over city.
    """
    name = (agency or "").strip()
    if any(marker in name for marker in EDU_AGENCY_MARKERS):
        return SCOPE_EDU
    if name.startswith(CITY_AGENCY_PREFIXES) or any(marker in name for marker in CITY_AGENCY_MARKERS):
        return SCOPE_CITY
    return SCOPE_OTHER


def make_bid_no(ntce_no: Optional[str], ntce_ord: Optional[str]) -> Optional[str]:
    """'2026001' + '0' -> '2026001-0'; ordinal optional; None without a number."""
    if not ntce_no:
        return None
    return f"{ntce_no}-{ntce_ord}" if ntce_ord else ntce_no


def extract_budgets(raw: Any) -> dict[str, Optional[Decimal]]:
    """Amount columns derivable from a raw item; budget falls back to base, then estimate."""
    if not isinstance(raw, dict):
        return {"base_amount": None, "estimated_price": None, "budget": None}
    fields = FieldLookup(raw)
    base_amount = fields.first(BASE_AMOUNT_KEYS, parse_number)
    estimated_price = fields.first(ESTIMATED_PRICE_KEYS, parse_number)
    budget = fields.first(BUDGET_KEYS, parse_number)
    if budget is None:
        budget = base_amount if base_amount is not None else estimated_price
    return {"base_amount": base_amount, "estimated_price": estimated_price, "budget": budget}


def normalize_tender(item: Any, source: str = G2B_SOURCE) -> Optional[dict[str, Any]]:
    """
    Canonical tender row for one upstream item, or None when the announcement
    number is missing (the item is dropped, the batch continues).
    """
    if not isinstance(item, dict):
        return None
    fields = FieldLookup(item)

    agency = fields.first(AGENCY_KEYS)
    ntce_no = fields.first(BID_NTCE_NO_KEYS)
    ntce_ord = fields.first(BID_NTCE_ORD_KEYS)
    bid_no = make_bid_no(ntce_no, ntce_ord)
    if not bid_no:
        logger.debug("Dropping item without bidNtceNo: keys=%s", sorted(item)[:10])
        return None

    row: dict[str, Any] = {
        "bid_no": bid_no,
        "bid_ntce_no": ntce_no,
        "bid_ntce_ord": ntce_ord,
        "title": fields.first(TITLE_KEYS),
        "agency": agency,
        "demand_org": fields.first(DEMAND_ORG_KEYS),
        "announced_at": fields.first(ANNOUNCED_AT_KEYS, to_date_only),
        "open_at": fields.first(OPEN_AT_KEYS, parse_timestamp),
        "source": source,
        "scope": classify_scope(agency),
        "source_key": None,
        "raw": item,
    }
    row.update(extract_budgets(item))
    return row
