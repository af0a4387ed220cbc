"""
PURPOSE: Pytest fixtures for momentum-sync tests.

Provides shared test infrastructure including:
- File-backed async SQLite engines and sessions (one database per test)
- A controllable clock for date_updated / signal_changed_at
- An in-memory fake of the Sheets values API that yields between calls
- A FastAPI TestClient wired to the test database and fake sheet
"""

import asyncio
import re
from datetime import datetime, timedelta
from typing import Any, List, Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from momentum_sync.core.errors import ExternalSyncError
from momentum_sync.core.rate_limit import limiter
from momentum_sync.db.engine import create_all
from momentum_sync.models.indicators import Indicator
from momentum_sync.services.state_merger import StateMerger
from momentum_sync.sync.reconciler import SheetReconciler
from momentum_sync.webhook.normalizer import SignalPolicy
from momentum_sync.webhook.processor import WebhookProcessor


# ════════════════════════════════════════════════════════════════
# Fake spreadsheet
# ════════════════════════════════════════════════════════════════

_ROW_IN_RANGE = re.compile(r"![A-Z]+(\d+)")


class FakeSheetClient:
    """
    PURPOSE: In-memory stand-in for the Sheets values API.

    rows[0] is the header (sheet row 1). Every call awaits between reading
    and writing state so unsynchronized callers interleave the way real
    network round-trips would.

    Attributes:
        rows: Sheet contents, one list per row.
        calls: (operation, range) tuples in call order.
        fail_with: Exception raised by the next calls, if set.
        append_then_fail: Exception raised once by the next append, after the
            row has been written (a response lost after the write landed).
    """

    def __init__(self, header: Optional[List[Any]] = None) -> None:
        self.rows: List[List[Any]] = [list(header or ["ticker"])]
        self.calls: List[tuple] = []
        self.fail_with: Optional[Exception] = None
        self.append_then_fail: Optional[Exception] = None

    async def _round_trip(self) -> None:
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with

    async def get_range(self, range_name: str) -> List[List[Any]]:
        self.calls.append(("get", range_name))
        await self._round_trip()
        column = [[row[0]] if row and row[0] != "" else [] for row in self.rows[1:]]
        while column and not column[-1]:
            column.pop()
        await asyncio.sleep(0)
        return column

    async def update_range(self, range_name: str, rows: List[List[Any]]) -> None:
        self.calls.append(("update", range_name))
        await self._round_trip()
        row_number = int(_ROW_IN_RANGE.search(range_name).group(1))
        self.rows[row_number - 1] = list(rows[0])

    async def append_rows(self, range_name: str, rows: List[List[Any]]) -> None:
        self.calls.append(("append", range_name))
        await self._round_trip()
        for row in rows:
            self.rows.append(list(row))
        if self.append_then_fail is not None:
            error, self.append_then_fail = self.append_then_fail, None
            raise error

    def data_rows(self) -> List[List[Any]]:
        return self.rows[1:]

    def tickers(self) -> List[str]:
        return [row[0] for row in self.rows[1:] if row]


# ════════════════════════════════════════════════════════════════
# Fixtures
# ════════════════════════════════════════════════════════════════


@pytest.fixture(autouse=True)
def disable_rate_limit():
    """
    PURPOSE: Turn slowapi off so bursts of test requests are never throttled.
    """
    previous = limiter.enabled
    limiter.enabled = False
    yield
    limiter.enabled = previous


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """
    PURPOSE: File-backed async SQLite engine with the securities table created.

    A file (not :memory:) so concurrent sessions see one database.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'securities.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(session_factory):
    """
    PURPOSE: One AsyncSession on the per-test database.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock(monkeypatch):
    """
    PURPOSE: Deterministic storage clock for the state merger.

    Each merge reads the next timestamp: 2025-01-02 09:30:00, then +1 minute
    per call. The fixture returns the list of issued timestamps.
    """
    issued: List[datetime] = []
    start = datetime(2025, 1, 2, 9, 30, 0)

    def fake_now() -> datetime:
        value = start + timedelta(minutes=len(issued))
        issued.append(value)
        return value

    monkeypatch.setattr("momentum_sync.services.state_merger.storage_now", fake_now)
    return issued


@pytest.fixture
def merger():
    return StateMerger(primary=Indicator.SIGNAL)


@pytest.fixture
def fake_sheet():
    return FakeSheetClient(header=["ticker", "sma_strategy", "occ"])


@pytest.fixture
def reconciler(fake_sheet):
    return SheetReconciler(client=fake_sheet, sheet_name="Sheet2")


@pytest.fixture
def processor(merger, reconciler):
    """
    PURPOSE: WebhookProcessor with free-text signals and the fake sheet attached.
    """
    return WebhookProcessor(
        policy=SignalPolicy(mode="free_text"),
        merger=merger,
        reconciler=reconciler,
    )


@pytest.fixture
def api_database_url(tmp_path):
    """
    PURPOSE: Database for HTTP tests, created outside any running loop.

    TestClient drives the app on its own event loop, so the engine used by
    the app uses NullPool and opens connections inside that loop.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'api.db'}"
    engine = create_async_engine(url, poolclass=pool.NullPool)

    async def _prepare() -> None:
        await create_all(engine)
        await engine.dispose()

    asyncio.run(_prepare())
    return url


@pytest.fixture
def client(api_database_url, processor):
    """
    PURPOSE: TestClient for the FastAPI app with DB and processor overridden.

    Lifespan is not entered, so startup migrations never run against the
    configured production database.

    Returns:
        TestClient: Client whose app uses the per-test database and fake sheet.
    """
    from momentum_sync.db.engine import get_db
    from momentum_sync.main import app
    from momentum_sync.webhook.processor import get_webhook_processor

    engine = create_async_engine(api_database_url, poolclass=pool.NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_webhook_processor] = lambda: processor

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def failing_sync(fake_sheet):
    """
    PURPOSE: Make every fake sheet call fail like an unavailable Sheets API.
    """
    fake_sheet.fail_with = ExternalSyncError("Sheets get failed with HTTP 503")
    return fake_sheet
