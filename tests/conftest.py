"""
Shared test fixtures.

The Supabase fake keeps rows in memory and honours the filters the
services use (eq, neq, in_, is_, gt/gte/lt/lte, order, limit, range,
single), so executor tests can assert on what was actually written.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings require Supabase credentials at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Optional
from uuid import uuid4


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        elif isinstance(self.data, list):
            self.count = len(self.data)
        else:
            self.count = 1


def _sort_key(value: Any) -> tuple:
    return (value is None, value if value is not None else 0)


class MockSupabaseQuery:
    """Chainable query against one in-memory table."""

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._operation = "select"
        self._payload: Any = None
        self._filters: list[Callable[[dict], bool]] = []
        self._order: list[tuple[str, bool]] = []
        self._limit: Optional[int] = None
        self._offset = 0
        self._is_single = False

    # Operations

    def select(self, *args, **kwargs):
        self._operation = "select"
        return self

    def insert(self, data):
        self._operation = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._operation = "update"
        self._payload = data
        return self

    def delete(self):
        self._operation = "delete"
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def is_(self, column, value):
        expected = None if value in (None, "null") else value
        self._filters.append(lambda row: row.get(column) is expected)
        return self

    def gt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row[column] > value)
        return self

    def gte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row[column] >= value)
        return self

    def lt(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row[column] < value)
        return self

    def lte(self, column, value):
        self._filters.append(lambda row: row.get(column) is not None and row[column] <= value)
        return self

    # Modifiers

    def order(self, column, desc: bool = False, **kwargs):
        self._order.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def range(self, start, end):
        self._offset = start
        self._limit = end - start + 1
        return self

    def single(self):
        self._is_single = True
        return self

    def _matches(self, row: dict) -> bool:
        return all(f(row) for f in self._filters)

    def execute(self) -> MockSupabaseResponse:
        self._table.client.check_error(self._table.name)
        rows = self._table.rows

        if self._operation == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            for item in items:
                now = datetime.now(timezone.utc).isoformat()
                row = {"id": str(uuid4()), "created_at": now, "updated_at": now, **item}
                rows.append(row)
                inserted.append(dict(row))
            return MockSupabaseResponse(data=inserted)

        if self._operation == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self._payload)
                    updated.append(dict(row))
            return MockSupabaseResponse(data=updated)

        if self._operation == "delete":
            removed = [row for row in rows if self._matches(row)]
            self._table.rows[:] = [row for row in rows if not self._matches(row)]
            return MockSupabaseResponse(data=[dict(r) for r in removed])

        result = [dict(row) for row in rows if self._matches(row)]
        for column, desc in reversed(self._order):
            result.sort(key=lambda r: _sort_key(r.get(column)), reverse=desc)
        total = len(result)
        result = result[self._offset:]
        if self._limit is not None:
            result = result[:self._limit]

        if self._is_single:
            return MockSupabaseResponse(data=result[0] if result else None, count=total)
        return MockSupabaseResponse(data=result, count=total)


class MockSupabaseTable:
    """In-memory table; every query starts here."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self.client = client
        self.name = name

    @property
    def rows(self) -> list[dict]:
        return self.client.tables.setdefault(self.name, [])

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self).insert(data)

    def update(self, data):
        return MockSupabaseQuery(self).update(data)

    def delete(self):
        return MockSupabaseQuery(self).delete()


class MockSupabaseClient:
    """Mock Supabase client backed by dicts."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self._errors: dict[str, Exception] = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Replace a table's rows (copied)."""
        self.tables[table_name] = [dict(row) for row in data]

    def add_rows(self, table_name: str, *rows: dict):
        """Append rows to a table (copied)."""
        self.tables.setdefault(table_name, []).extend(dict(row) for row in rows)

    def rows(self, table_name: str) -> list[dict]:
        """Current rows of a table."""
        return self.tables.get(table_name, [])

    def row(self, table_name: str, row_id: str) -> Optional[dict]:
        """Row by id, or None."""
        return next((r for r in self.rows(table_name) if r.get("id") == row_id), None)

    def set_error(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self._errors[table_name] = error

    def check_error(self, table_name: str):
        if table_name in self._errors:
            raise self._errors[table_name]

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)


# ===================
# FIXTURES
# ===================

CLIENT_IMPORT_SITES = (
    "config.database.get_supabase_client",
    "services.fulfillment_store.get_supabase_client",
    "services.rule_service.get_supabase_client",
    "services.approval_service.get_supabase_client",
)


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("trucks", [
                {"id": "t1", "capacity": 30, "status": "available", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop cached service instances so each test builds its own."""
    import services.fulfillment_store as fulfillment_store
    import services.lock_service as lock_service
    import services.inventory_service as inventory_service
    import services.rule_service as rule_service
    import services.recommendation_service as recommendation_service
    import services.assignment_service as assignment_service
    import services.approval_service as approval_service

    def clear():
        fulfillment_store._fulfillment_store = None
        lock_service._aggregate_locks = None
        inventory_service._inventory_service = None
        rule_service._rule_service = None
        recommendation_service._recommendation_service = None
        assignment_service._assignment_service = None
        approval_service._approval_service = None

    clear()
    yield
    clear()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("orders", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    patches = [patch(target, return_value=mock_supabase) for target in CLIENT_IMPORT_SITES]
    for p in patches:
        p.start()
    try:
        yield mock_supabase
    finally:
        for p in reversed(patches):
            p.stop()


@pytest.fixture
def store(mock_db):
    """FulfillmentStore over the mock client."""
    from services.fulfillment_store import FulfillmentStore

    return FulfillmentStore()


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("orders", [...])
            response = test_client_with_mock_db.get("/api/dispatcher/...")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
