"""Pytest configuration and shared fixtures.

Set env before any app module imports (settings are read at import time).
Provides reusable fixtures: in-memory database, session, API client,
fake G2B client, tender factory.
"""
import os
import uuid
from datetime import date, datetime
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["DATA_GO_KR_SERVICE_KEY"] = "test-service-key"
os.environ["G2B_REQUEST_DELAY_SECONDS"] = "0"

from app.connectors.g2b.client import get_g2b_client
from app.connectors.g2b.official_client import G2BPage
from app.db.session import Database
from app.main import create_app
from app.models.tender import Tender
from app.utils.time_windows import TimeWindow

ADMIN_HEADERS = {"Authorization": "Bearer test-admin-token"}


# ── Database fixtures ────────────────────────────────────────────────

@pytest.fixture()
def database():
    """In-memory SQLite shared across threads (TestClient runs handlers in a worker thread)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    handle = Database(engine=engine)
    handle.create_all()
    yield handle
    handle.close()


@pytest.fixture()
def db(database):
    session = database.session()
    yield session
    session.close()


# ── API fixtures ─────────────────────────────────────────────────────

@pytest.fixture()
def app(database):
    return create_app(database=database)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


# ── G2B fakes ────────────────────────────────────────────────────────

def g2b_payload(items: Any, total_count: Optional[int] = None, code: str = "00", msg: str = "NORMAL SERVICE.") -> dict:
    """data.go.kr JSON envelope around a list of items."""
    return {
        "response": {
            "header": {"resultCode": code, "resultMsg": msg},
            "body": {
                "items": items,
                "numOfRows": 100,
                "pageNo": 1,
                "totalCount": total_count if total_count is not None else (len(items) if isinstance(items, list) else 0),
            },
        }
    }


def g2b_item(no: str, ord_: str = "000", **extra: Any) -> dict:
    item = {
        "bidNtceNo": no,
        "bidNtceOrd": ord_,
        "bidNtceNm": f"공고 {no}",
        "ntceInsttNm": "경기도 고양시",
        "bidNtceDt": "2026-02-04 10:00:00",
        "bscAmt": "1,000,000",
    }
    item.update(extra)
    return item


class FakeG2BClient:
    """Scripted stand-in for G2BClient.fetch_page."""

    def __init__(self, handler: Callable[[str, TimeWindow, int, int], Any]):
        self.handler = handler
        self.calls: list[dict] = []

    def fetch_page(self, operation: str, window: TimeWindow, page_no: int = 1, num_rows: int = 100, inqry_div: str = "1") -> G2BPage:
        self.calls.append(
            {"operation": operation, "window": window, "page_no": page_no, "num_rows": num_rows, "inqry_div": inqry_div}
        )
        result = self.handler(operation, window, page_no, num_rows)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, G2BPage):
            return result
        return G2BPage.from_payload(f"https://example.test/{operation}", 200, result)


@pytest.fixture()
def fake_g2b(app):
    """Install a FakeG2BClient on the app; call it with a handler."""
    def install(handler):
        fake = FakeG2BClient(handler)
        app.dependency_overrides[get_g2b_client] = lambda: fake
        return fake

    yield install
    app.dependency_overrides.pop(get_g2b_client, None)


# ── Storage failures ─────────────────────────────────────────────────

class DriverError(Exception):
    """DBAPI-style error carrying a psycopg-like ``diag``."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.diag = SimpleNamespace(message_hint=hint)


def fail_inserts(db, monkeypatch, message: str = "disk full", hint: Optional[str] = "free some space") -> None:
    """Make every INSERT executed through ``db`` raise OperationalError; other statements run normally."""
    real_execute = db.execute

    def execute(statement, *args, **kwargs):
        if getattr(statement, "is_insert", False):
            raise OperationalError("INSERT INTO tenders", {}, DriverError(message, hint))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", execute)


# ── Tender factory ───────────────────────────────────────────────────

def make_tender(**kwargs) -> Tender:
    """Factory for Tender with sensible defaults."""
    uid = uuid.uuid4().hex[:8]
    defaults = {
        "id": str(uuid.uuid4()),
        "bid_no": f"R26BK{uid}-000",
        "title": "Default tender title",
        "agency": "경기도 고양시",
        "announced_at": date(2026, 2, 4),
        "source": "g2b_data_go_kr",
        "updated_at": datetime(2026, 2, 4, 12, 0, 0),
    }
    defaults.update(kwargs)
    return Tender(**defaults)


def seed_tenders(db, tenders: list[Tender]) -> None:
    for t in tenders:
        db.add(t)
    db.commit()


# ── Markers ──────────────────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: marks unit tests")
    config.addinivalue_line("markers", "integration: marks integration tests")


