"""Tests for tender CRUD: idempotent upsert, additive enrichment, keyset pagination."""
from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from app.db.crud.tenders import (
    ORDER_UPDATED,
    TenderCursor,
    dedupe_by_bid_no,
    enrich_budgets,
    get_tender,
    list_tenders,
    upsert_tenders,
)
from app.core.errors import StorageError
from app.models.tender import Tender
from app.services.tender_normalizer import normalize_tender
from tests.conftest import fail_inserts, g2b_item, make_tender, seed_tenders


def _count(db) -> int:
    return db.scalar(select(func.count()).select_from(Tender))


def _fresh(db, bid_no: str) -> Tender:
    db.expire_all()
    return get_tender(db, bid_no)


# ── upsert ───────────────────────────────────────────────────────────


def test_upsert_inserts_then_updates_same_keys(db) -> None:
    rows = [normalize_tender(g2b_item(f"U{i}")) for i in range(3)]

    assert upsert_tenders(db, rows) == (3, 0)
    assert upsert_tenders(db, rows) == (0, 3)
    assert _count(db) == 3


def test_upsert_overwrites_text_but_keeps_amounts_when_new_is_null(db) -> None:
    upsert_tenders(db, [normalize_tender(g2b_item("K1", bscAmt="1,000,000", bidNtceNm="old title"))])

    item = g2b_item("K1", bidNtceNm="new title")
    del item["bscAmt"]
    upsert_tenders(db, [normalize_tender(item)])

    t = _fresh(db, "K1-000")
    assert t.title == "new title"
    assert t.base_amount == Decimal(1000000)
    assert t.budget == Decimal(1000000)


def test_upsert_replaces_amount_when_new_value_present(db) -> None:
    upsert_tenders(db, [normalize_tender(g2b_item("K2", bscAmt="100"))])
    upsert_tenders(db, [normalize_tender(g2b_item("K2", bscAmt="250"))])
    assert _fresh(db, "K2-000").base_amount == Decimal(250)


def test_upsert_dedupes_within_batch_last_wins(db) -> None:
    rows = [
        normalize_tender(g2b_item("D1", bidNtceNm="first")),
        normalize_tender(g2b_item("D1", bidNtceNm="second")),
    ]
    assert upsert_tenders(db, rows) == (1, 0)
    assert _fresh(db, "D1-000").title == "second"


def test_upsert_empty_batch_is_noop(db) -> None:
    assert upsert_tenders(db, []) == (0, 0)
    assert _count(db) == 0


def test_upsert_stores_raw_payload(db) -> None:
    item = g2b_item("J1", ntceInsttNm="경기도 고양시 일산동구")
    upsert_tenders(db, [normalize_tender(item)])
    t = _fresh(db, "J1-000")
    assert t.raw["bidNtceNo"] == "J1"
    assert t.scope == "CITY"
    assert t.announced_at == date(2026, 2, 4)


def test_upsert_failure_rolls_back_and_raises_storage_error(db, monkeypatch) -> None:
    fail_inserts(db, monkeypatch, message="disk full", hint="free some space")
    monkeypatch.setattr(db, "rollback", MagicMock(wraps=db.rollback))

    with pytest.raises(StorageError) as exc_info:
        upsert_tenders(db, [normalize_tender(g2b_item("X1"))])

    err = exc_info.value
    assert err.message == "disk full"
    assert err.hint == "free some space"
    assert err.status_code == 500
    assert err.to_dict() == {"ok": False, "stage": "upsert", "error": "disk full", "hint": "free some space"}
    db.rollback.assert_called_once()
    monkeypatch.undo()
    assert _count(db) == 0


def test_dedupe_keeps_first_seen_order() -> None:
    rows = [{"bid_no": "a", "v": 1}, {"bid_no": "b", "v": 1}, {"bid_no": "a", "v": 2}]
    assert dedupe_by_bid_no(rows) == [{"bid_no": "a", "v": 2}, {"bid_no": "b", "v": 1}]


# ── enrich_budgets ───────────────────────────────────────────────────


def test_enrich_fills_null_amounts_from_raw(db) -> None:
    seed_tenders(db, [make_tender(bid_no="E1-000", raw={"bscAmt": "2,000", "presmptPrce": "1,800"})])

    result = enrich_budgets(db, limit=50)

    assert result == {"processed": 1, "updated": 1, "updatedBidNos": ["E1-000"]}
    t = _fresh(db, "E1-000")
    assert t.base_amount == Decimal(2000)
    assert t.estimated_price == Decimal(1800)
    assert t.budget == Decimal(2000)


def test_enrich_never_overwrites_populated_amounts(db) -> None:
    seed_tenders(
        db,
        [make_tender(bid_no="E2-000", base_amount=Decimal(500), raw={"bscAmt": "9,999", "presmptPrce": "700"})],
    )

    enrich_budgets(db)

    t = _fresh(db, "E2-000")
    assert t.base_amount == Decimal(500)
    assert t.estimated_price == Decimal(700)


def test_enrich_skips_rows_without_usable_raw(db) -> None:
    seed_tenders(db, [make_tender(bid_no="E3-000", raw={"bscAmt": ""}), make_tender(bid_no="E4-000", raw=None)])

    result = enrich_budgets(db)

    assert result["processed"] == 2
    assert result["updated"] == 0
    assert result["updatedBidNos"] == []


def test_enrich_respects_limit(db) -> None:
    seed_tenders(db, [make_tender(bid_no=f"L{i}-000", raw={"bscAmt": "10"}) for i in range(5)])
    assert enrich_budgets(db, limit=2)["processed"] == 2


def test_enrich_moves_row_ahead_in_updated_order(db) -> None:
    seed_tenders(db, [make_tender(bid_no="A1-000", updated_at=datetime(2026, 1, 1), raw={"bscAmt": "10"})])
    upsert_tenders(db, [normalize_tender(g2b_item("B1"))])
    b1_updated = _fresh(db, "B1-000").updated_at

    assert enrich_budgets(db)["updatedBidNos"] == ["A1-000"]

    assert _fresh(db, "A1-000").updated_at > b1_updated
    seen, cursor = [], None
    for _ in range(5):
        rows, cursor = list_tenders(db, limit=1, cursor=cursor, order=ORDER_UPDATED)
        seen.extend(r.bid_no for r in rows)
        if cursor is None:
            break
    assert cursor is None
    assert seen == ["A1-000", "B1-000"]


# ── keyset pagination ────────────────────────────────────────────────


def _seed_mixed(db, n: int) -> list[tuple[str, date | None]]:
    """n tenders with repeated announced_at values and a block of nulls."""
    specs = []
    for i in range(n):
        announced = None if i % 7 == 0 else date(2026, 2, 1) + timedelta(days=i % 5)
        specs.append((f"B{i:03d}", announced))
    seed_tenders(
        db,
        [
            make_tender(
                bid_no=bid_no,
                announced_at=announced,
                updated_at=datetime(2026, 2, 4, 12, 0) + timedelta(minutes=i % 3),
            )
            for i, (bid_no, announced) in enumerate(specs)
        ],
    )
    return specs


def _expected_order(specs: list[tuple[str, date | None]]) -> list[str]:
    by_bid = sorted(specs, key=lambda s: s[0], reverse=True)
    ordered = sorted(by_bid, key=lambda s: (s[1] is None, -(s[1].toordinal() if s[1] else 0)))
    return [bid_no for bid_no, _ in ordered]


def _walk(db, limit: int, **kwargs) -> list[list[str]]:
    pages, cursor = [], None
    while True:
        rows, cursor = list_tenders(db, limit=limit, cursor=cursor, **kwargs)
        pages.append([r.bid_no for r in rows])
        if cursor is None:
            return pages


def test_keyset_walk_visits_every_row_once_in_order(db) -> None:
    specs = _seed_mixed(db, 47)

    pages = _walk(db, limit=20)

    flat = [b for page in pages for b in page]
    assert [len(p) for p in pages] == [20, 20, 7]
    assert len(flat) == len(set(flat)) == 47
    assert flat == _expected_order(specs)


def test_second_page_starts_after_last_row_of_first(db) -> None:
    _seed_mixed(db, 30)

    first, cursor = list_tenders(db, limit=20)
    second, _ = list_tenders(db, limit=20, cursor=cursor)

    assert cursor.bid_no == first[-1].bid_no
    assert first[-1].bid_no not in [r.bid_no for r in second]


def test_next_cursor_absent_when_rows_fit_exactly(db) -> None:
    _seed_mixed(db, 40)
    pages = _walk(db, limit=20)
    assert [len(p) for p in pages] == [20, 20]


def test_null_tail_is_paged_with_bid_no(db) -> None:
    seed_tenders(db, [make_tender(bid_no=f"N{i}", announced_at=None) for i in range(5)])

    pages = _walk(db, limit=2)

    assert pages == [["N4", "N3"], ["N2", "N1"], ["N0"]]


def test_keyset_walk_by_updated_at(db) -> None:
    specs = _seed_mixed(db, 25)
    updated = {bid: datetime(2026, 2, 4, 12, 0) + timedelta(minutes=i % 3) for i, (bid, _) in enumerate(specs)}

    pages = _walk(db, limit=10, order=ORDER_UPDATED)

    flat = [b for page in pages for b in page]
    assert len(flat) == len(set(flat)) == 25
    assert flat == sorted(updated, key=lambda b: (updated[b], b), reverse=True)


def test_cursor_to_dict_per_order() -> None:
    c = TenderCursor(bid_no="X-1", announced_at=date(2026, 2, 4), updated_at=datetime(2026, 2, 4, 12, 0))
    assert c.to_dict() == {"cursorAnnouncedAt": "2026-02-04", "cursorBidNo": "X-1"}
    assert c.to_dict(ORDER_UPDATED) == {"cursorUpdatedAt": "2026-02-04T12:00:00", "cursorBidNo": "X-1"}


# ── filters ──────────────────────────────────────────────────────────


def test_filters_source_scope_and_text(db) -> None:
    seed_tenders(
        db,
        [
            make_tender(bid_no="F1", title="도로 포장 공사", source="g2b_data_go_kr", scope="Local"),
            make_tender(bid_no="F2", title="교량 보수", agency="부산광역시", source="g2b_data_go_kr", scope="NATIONAL"),
            make_tender(bid_no="F3", title="Road lighting", source="manual_ingest", scope="local"),
        ],
    )

    def bids(**kwargs) -> set[str]:
        rows, _ = list_tenders(db, limit=50, **kwargs)
        return {r.bid_no for r in rows}

    assert bids(source="manual_ingest") == {"F3"}
    assert bids(scope="LOCAL") == {"F1", "F3"}
    assert bids(scope="all") == {"F1", "F2", "F3"}
    assert bids(q="부산") == {"F2"}
    assert bids(q="road") == {"F3"}
    assert bids(q="f2") == {"F2"}
    assert bids(q="도로", source="g2b_data_go_kr") == {"F1"}
