#!/usr/bin/env python3
"""
Ingest G2B bid announcements from the command line (no HTTP server needed).

Examples:
    python scripts/ingest_g2b.py --month 202401
    python scripts/ingest_g2b.py --months-from 202207 --biz servc
    python scripts/ingest_g2b.py --from 202601010000 --to 202601312359 --chunk-days 3

Prints one JSON summary per run; exit code 1 if any run recorded errors.
"""
import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app.utils.env import load_env_if_present

load_env_if_present()

from app.connectors.g2b.client import build_client
from app.connectors.g2b.official_client import OPERATION_BY_BIZ
from app.core.config import settings
from app.core.errors import ConfigError
from app.core.logging import setup_logging
from app.db.session import Database
from app.services.ingestion_service import (
    DEFAULT_CHUNK_DAYS,
    DEFAULT_MAX_PAGES,
    DEFAULT_NUM_ROWS,
    TenderIngestionService,
    record_import_run,
)
from app.utils.time_windows import TimeWindow, month_window

logger = logging.getLogger("ingest_g2b")


def _months(start: str, end: str) -> list[str]:
    """YYYYMM values from start through end, inclusive."""
    out = []
    year, month = int(start[:4]), int(start[4:])
    while f"{year:04d}{month:02d}" <= end:
        out.append(f"{year:04d}{month:02d}")
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return out


def build_windows(args: argparse.Namespace) -> list[TimeWindow]:
    if args.month:
        return [month_window(args.month)]
    if args.months_from:
        return [month_window(m) for m in _months(args.months_from, datetime.now().strftime("%Y%m"))]
    if args.from_ and args.to:
        return [TimeWindow.from_compact(args.from_, args.to)]
    return []


def main() -> int:
    parser = argparse.ArgumentParser(description="Ingest G2B bid announcements into the tenders table.")
    parser.add_argument("--biz", choices=sorted(OPERATION_BY_BIZ), default="cnstwk")
    parser.add_argument("--month", help="Single month YYYYMM")
    parser.add_argument("--months-from", dest="months_from", help="Every month from YYYYMM through the current month")
    parser.add_argument("--from", dest="from_", help="YYYYMMDDHHmm (with --to)")
    parser.add_argument("--to", help="YYYYMMDDHHmm (with --from)")
    parser.add_argument("--chunk-days", type=float, default=DEFAULT_CHUNK_DAYS)
    parser.add_argument("--num-rows", type=int, default=DEFAULT_NUM_ROWS)
    parser.add_argument("--max-pages", type=int, default=DEFAULT_MAX_PAGES)
    parser.add_argument("--fail-fast", action="store_true", help="Stop a run at its first failed window")
    parser.add_argument("--db-url", dest="db_url", default=None, help="DATABASE_URL override")
    args = parser.parse_args()

    setup_logging()

    if bool(args.from_) != bool(args.to):
        parser.error("--from and --to must be given together")
    try:
        windows = build_windows(args) or [None]
    except ValueError as e:
        parser.error(str(e))

    try:
        client = build_client()
    except ConfigError as e:
        logger.error("%s", e.message)
        return 2

    database = Database(args.db_url or settings.database_url)
    had_errors = False
    try:
        for window in windows:
            db = database.session()
            try:
                svc = TenderIngestionService(db, client, request_delay_seconds=settings.g2b_request_delay_seconds)
                summary = svc.run(
                    biz=args.biz,
                    window=window,
                    chunk_days=args.chunk_days,
                    num_rows=args.num_rows,
                    max_pages=args.max_pages,
                    fail_fast=args.fail_fast,
                )
                record_import_run(db, summary, trigger="cli")
            finally:
                db.close()
            had_errors = had_errors or not summary.ok
            print(json.dumps(summary.to_dict(), ensure_ascii=False), flush=True)
    finally:
        database.close()

    return 1 if had_errors else 0


if __name__ == "__main__":
    sys.exit(main())
