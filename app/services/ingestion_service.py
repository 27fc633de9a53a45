"""Tender ingestion: windows -> pages -> normalized rows -> upsert.

Runs sequentially (window by window, page by page) with a fixed delay
between upstream requests. A range-too-large answer (code 07) halves the
window and re-queues both halves, each read from page 1. Other failures are recorded per window;
with ``fail_fast`` the run stops at the first one, otherwise later windows
still run and the summary lists what failed.
"""
import logging
import math
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.connectors.g2b.official_client import G2BClient, operation_for
from app.core.errors import RangeTooLargeError, WatchboardError
from app.db.crud.tenders import upsert_tenders
from app.models.import_run import ImportRun
from app.services.tender_normalizer import G2B_SOURCE, normalize_tender
from app.utils.time_windows import TimeWindow, default_window, split_days

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_DAYS = 7
DEFAULT_NUM_ROWS = 100
DEFAULT_MAX_PAGES = 50


@dataclass
class IngestionSummary:
    biz: str
    operation: str
    base_window: TimeWindow
    chunk_days: float
    fail_fast: bool = False
    windows: int = 0
    range_splits: int = 0
    pages: int = 0
    fetched: int = 0
    dropped: int = 0
    created: int = 0
    updated: int = 0
    aborted: bool = False
    errors: list[dict[str, Any]] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def upserted(self) -> int:
        return self.created + self.updated

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def status_code(self) -> int:
        """HTTP status for the run: 200, else the first failure's status."""
        if not self.errors:
            return 200
        return int(self.errors[0].get("statusCode") or 500)

    def counts(self) -> tuple[int, int, int, int, int]:
        return self.pages, self.fetched, self.dropped, self.created, self.updated

    def restore_counts(self, counts: tuple[int, int, int, int, int]) -> None:
        self.pages, self.fetched, self.dropped, self.created, self.updated = counts

    def record_error(self, window: TimeWindow, exc: WatchboardError) -> None:
        self.errors.append(
            {
                "window": window.to_dict(),
                "stage": exc.stage,
                "statusCode": exc.status_code,
                "error": exc.message,
                **exc.details,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "biz": self.biz,
            "op": self.operation,
            "baseWindow": self.base_window.to_dict(),
            "chunkDays": self.chunk_days,
            "failFast": self.fail_fast,
            "windows": self.windows,
            "rangeSplits": self.range_splits,
            "pages": self.pages,
            "totalFetched": self.fetched,
            "totalUpserted": self.upserted,
            "created": self.created,
            "updated": self.updated,
            "dropped": self.dropped,
            "aborted": self.aborted,
            "errors": self.errors,
        }


class TenderIngestionService:
    """Pull BidPublicInfoService list pages into the tenders table."""

    def __init__(
        self,
        db: Session,
        client: G2BClient,
        request_delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.client = client
        self.request_delay_seconds = request_delay_seconds
        self._sleep = sleep
        self._requests_made = 0

    def run(
        self,
        biz: str = "cnstwk",
        window: Optional[TimeWindow] = None,
        chunk_days: float = DEFAULT_CHUNK_DAYS,
        num_rows: int = DEFAULT_NUM_ROWS,
        max_pages: int = DEFAULT_MAX_PAGES,
        inqry_div: str = "1",
        fail_fast: bool = False,
        start_page: int = 1,
    ) -> IngestionSummary:
        """
        Ingest every window of ``window`` (default: last 24 hours).
        ``start_page`` applies to the initial windows only.
        Raises ValueError for an unknown biz or an invalid window/chunk.
        """
        operation = operation_for(biz)
        base_window = window or default_window()
        queue = deque((w, start_page) for w in split_days(base_window.begin, base_window.end, chunk_days))

        summary = IngestionSummary(
            biz=biz,
            operation=operation,
            base_window=base_window,
            chunk_days=chunk_days,
            fail_fast=fail_fast,
        )
        logger.info(
            "Ingesting %s %s..%s in %d window(s)",
            operation, base_window.to_dict()["from"], base_window.to_dict()["to"], len(queue),
        )

        while queue:
            w, first_page = queue.popleft()
            counts = summary.counts()
            try:
                self._ingest_window(summary, operation, w, num_rows, max_pages, inqry_div, first_page)
                summary.windows += 1
            except RangeTooLargeError as e:
                halves = w.halve()
                if halves:
                    logger.info("Range too large for %s, retrying as %d narrower windows", w.to_dict(), len(halves))
                    # the halves re-read from page 1; counts from the abandoned attempt are dropped
                    summary.restore_counts(counts)
                    summary.range_splits += 1
                    queue.extendleft((half, 1) for half in reversed(halves))
                    continue
                summary.record_error(w, e)
                logger.warning("Range too large even for %s; window skipped", w.to_dict())
                if fail_fast:
                    summary.aborted = True
                    break
            except WatchboardError as e:
                summary.record_error(w, e)
                logger.warning("Window %s failed at %s: %s", w.to_dict(), e.stage, e.message)
                if fail_fast:
                    summary.aborted = True
                    break

        summary.completed_at = datetime.now(timezone.utc)
        logger.info(
            "Ingestion %s done: windows=%d pages=%d fetched=%d created=%d updated=%d errors=%d",
            operation, summary.windows, summary.pages, summary.fetched,
            summary.created, summary.updated, len(summary.errors),
        )
        return summary

    def _ingest_window(
        self,
        summary: IngestionSummary,
        operation: str,
        window: TimeWindow,
        num_rows: int,
        max_pages: int,
        inqry_div: str,
        start_page: int,
    ) -> None:
        page_no = start_page
        pages_this_window = 0

        while pages_this_window < max_pages:
            if self._requests_made and self.request_delay_seconds > 0:
                self._sleep(self.request_delay_seconds)

            try:
                self._requests_made += 1
                page = self.client.fetch_page(operation, window, page_no, num_rows, inqry_div)
                pages_this_window += 1
                summary.pages += 1
                page.raise_for_result()

                if not page.items:
                    break
                summary.fetched += len(page.items)

                rows = [row for row in (normalize_tender(it) for it in page.items) if row]
                summary.dropped += len(page.items) - len(rows)
                if rows:
                    created, updated = upsert_tenders(self.db, rows)
                    summary.created += created
                    summary.updated += updated
            except WatchboardError as e:
                e.details.setdefault("pageNo", page_no)
                raise

            page_no += 1
            if page.total_count is not None and page_no > math.ceil(page.total_count / num_rows):
                break


def record_import_run(db: Session, summary: IngestionSummary, trigger: str = "api") -> Optional[ImportRun]:
    """Persist the run summary; failures are logged, never raised."""
    run = ImportRun(
        source=G2B_SOURCE,
        started_at=summary.started_at.replace(tzinfo=None),
        completed_at=(summary.completed_at or datetime.now(timezone.utc)).replace(tzinfo=None),
        created_count=summary.created,
        updated_count=summary.updated,
        error_count=len(summary.errors),
        errors_json=summary.errors or None,
        search_criteria_json={
            "biz": summary.biz,
            "window": summary.base_window.to_dict(),
            "chunk_days": summary.chunk_days,
            "trigger": trigger,
        },
    )
    try:
        db.add(run)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Failed to save import_run: %s", e)
        return None
    return run
