import os
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict

import pytest

# Settings are read at import time; give them harmless values before any
# tradalyse module is imported.
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_S3_BUCKET", "tradalyse-test")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("DEFAULT_TIMEZONE", "UTC")

from fastapi.testclient import TestClient  # noqa: E402

from tradalyse.api.deps import get_reference_time  # noqa: E402
from tradalyse.core.auth import verify_supabase_token  # noqa: E402
from tradalyse.main import app  # noqa: E402

USER_ID = "6f1c2d4e-8a7b-4c3d-9e2f-1a2b3c4d5e6f"
NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def make_trade(pnl=None, status=None, **overrides: Any) -> Dict[str, Any]:
    """A trades-table row. Passing a pnl makes it closed unless told otherwise."""
    if status is None:
        status = "closed" if pnl is not None else "open"
    row = {
        "id": str(uuid.uuid4()),
        "user_id": USER_ID,
        "symbol": "AAPL",
        "side": "long",
        "asset_type": "Stock",
        "entry_price": 100.0,
        "exit_price": None,
        "quantity": 10,
        "commission": 0,
        "pnl": pnl,
        "status": status,
        "entry_date": "2025-03-10T14:30:00+00:00",
        "exit_date": None,
    }
    row.update(overrides)
    return row


class FakeSupabase:
    """
    Just enough of the supabase query builder for trade reads. Like
    PostgREST it never returns more than `max_rows` rows per request.
    """

    def __init__(self, rows, max_rows=1000):
        self.rows = rows
        self.max_rows = max_rows
        self.ranges = []

    def table(self, name):
        return _FakeQuery(self)


class _FakeQuery:
    def __init__(self, db):
        self.db = db
        self.bounds = None

    def select(self, *a, **kw):
        return self

    def eq(self, *a, **kw):
        return self

    gte = lt = order = eq

    def range(self, start, end):
        self.bounds = (start, end)
        self.db.ranges.append(self.bounds)
        return self

    def execute(self):
        start, end = self.bounds or (0, len(self.db.rows) - 1)
        end = min(end, start + self.db.max_rows - 1)
        return SimpleNamespace(data=self.db.rows[start:end + 1])


@pytest.fixture
def client():
    app.dependency_overrides[verify_supabase_token] = lambda: USER_ID
    app.dependency_overrides[get_reference_time] = lambda: NOW
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
