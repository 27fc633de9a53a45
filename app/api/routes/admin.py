"""Admin endpoints: G2B ingestion trigger, manual row ingest, budget enrichment, import runs."""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.schemas.tender import TenderRowsIn
from app.connectors.g2b.client import get_g2b_client
from app.connectors.g2b.official_client import OPERATION_BY_BIZ, G2BClient
from app.core.auth import require_admin_token
from app.core.config import settings
from app.core.errors import InputValidationError
from app.db.crud.tenders import enrich_budgets, upsert_tenders
from app.db.session import get_db
from app.models.import_run import ImportRun
from app.services.ingestion_service import (
    DEFAULT_CHUNK_DAYS,
    DEFAULT_MAX_PAGES,
    DEFAULT_NUM_ROWS,
    TenderIngestionService,
    record_import_run,
)
from app.utils.time_windows import TimeWindow

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)


# ── G2B ingestion trigger ────────────────────────────────────────────


@router.post("/ingest-g2b")
def ingest_g2b(
    biz: str = Query("cnstwk", description=f"One of: {', '.join(OPERATION_BY_BIZ)}"),
    from_: Optional[str] = Query(None, alias="from", description="YYYYMMDDHHmm; default now-24h"),
    to: Optional[str] = Query(None, description="YYYYMMDDHHmm; default now"),
    chunk_days: float = Query(DEFAULT_CHUNK_DAYS, alias="chunkDays", gt=0, le=31),
    num_of_rows: int = Query(DEFAULT_NUM_ROWS, alias="numOfRows", ge=1, le=999),
    max_pages: int = Query(DEFAULT_MAX_PAGES, alias="maxPages", ge=1, le=500),
    inqry_div: str = Query("1", alias="inqryDiv"),
    page_no: int = Query(1, alias="pageNo", ge=1),
    fail_fast: bool = Query(False, alias="failFast"),
    db: Session = Depends(get_db),
    client: G2BClient = Depends(get_g2b_client),
) -> JSONResponse:
    """
    Pull bid announcements for [from, to] in chunkDays windows and upsert them.
    Status is 200 when every window succeeded, else the first failure's status
    (502 upstream, 500 storage) with the partial summary in the body.
    """
    if biz not in OPERATION_BY_BIZ:
        raise InputValidationError(f"Invalid biz. Use one of: {', '.join(OPERATION_BY_BIZ)}")
    if bool(from_) != bool(to):
        raise InputValidationError("from and to must be given together")

    window = None
    if from_ and to:
        try:
            window = TimeWindow.from_compact(from_, to)
        except ValueError as e:
            raise InputValidationError(str(e)) from None

    svc = TenderIngestionService(db, client, request_delay_seconds=settings.g2b_request_delay_seconds)
    try:
        summary = svc.run(
            biz=biz,
            window=window,
            chunk_days=chunk_days,
            num_rows=num_of_rows,
            max_pages=max_pages,
            inqry_div=inqry_div,
            fail_fast=fail_fast,
            start_page=page_no,
        )
    except ValueError as e:
        raise InputValidationError(str(e)) from None

    run = record_import_run(db, summary, trigger="api")
    body = summary.to_dict()
    body["importRunId"] = run.id if run else None
    return JSONResponse(status_code=summary.status_code, content=body)


# ── Manual row ingest ────────────────────────────────────────────────


@router.post("/ingest-bids")
def ingest_bids(payload: TenderRowsIn, db: Session = Depends(get_db)) -> dict[str, Any]:
    """
    Upsert already-canonical rows: {"rows": [{"bid_no": ..., ...}, ...]}.
    Rows that fail validation are dropped and listed under "rejected";
    400 only when none are left.
    """
    valid, rejected = payload.valid_rows()
    if rejected:
        logger.info("ingest-bids dropped %d of %d rows", len(rejected), len(payload.rows))
    if not valid:
        raise InputValidationError("No valid rows after normalization", {"rejected": rejected})

    created, updated = upsert_tenders(db, [row.to_row() for row in valid])
    return {
        "ok": True,
        "received": len(payload.rows),
        "upserted": created + updated,
        "created": created,
        "updated": updated,
        "dropped": len(rejected),
        "rejected": rejected,
    }


# ── Budget enrichment ────────────────────────────────────────────────


@router.post("/enrich-budgets")
def post_enrich_budgets(
    limit: int = Query(50, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Fill null budget / base_amount / estimated_price from each row's raw payload."""
    result = enrich_budgets(db, limit=limit)
    if not result["processed"]:
        return {"ok": True, "message": "nothing to enrich", **result}
    return {"ok": True, **result}


# ── Import runs ──────────────────────────────────────────────────────


@router.get("/import-runs")
def list_import_runs(
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Most recent ingestion runs first."""
    runs = db.scalars(select(ImportRun).order_by(ImportRun.started_at.desc()).limit(limit)).all()
    return {"ok": True, "data": [run.to_dict() for run in runs]}
