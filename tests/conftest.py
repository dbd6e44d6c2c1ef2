"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from unittest.mock import patch
from contextlib import ExitStack
from datetime import datetime, timezone
from typing import Callable, Generator, Optional
from uuid import uuid4

# Modules that call get_supabase_client() and need the mock
DB_CLIENT_PATCH_TARGETS = [
    "config.database.get_supabase_client",
    "services.product_service.get_supabase_client",
    "services.category_service.get_supabase_client",
    "services.upload_history_service.get_supabase_client",
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else 1)


class MockTableState:
    """Rows of one mock table, shared by every query against it."""

    def __init__(self, rows: list = None, count: int = None):
        self.rows = rows if rows is not None else []
        self.count = count
        self.error: Optional[str] = None
        self.write_failures: list[tuple[Callable[[dict], bool], str]] = []


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Filters are applied on execute; inserts and updates change the
    table's rows, so later queries see earlier writes.
    """

    def __init__(self, state: MockTableState):
        self._state = state
        self._op = "select"
        self._payload = None
        self._filters: list[Callable[[dict], bool]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None
        self._is_single = False

    def select(self, *args, **kwargs):
        self._op = "select"
        return self

    def insert(self, data):
        self._op = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._op = "update"
        self._payload = data
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        allowed = set(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._state.error:
            raise Exception(self._state.error)

        if self._op == "insert":
            return MockSupabaseResponse(data=self._insert())

        matched = [row for row in self._state.rows if all(f(row) for f in self._filters)]

        if self._op == "update":
            return MockSupabaseResponse(data=self._update(matched))

        if self._op == "delete":
            self._state.rows[:] = [row for row in self._state.rows if row not in matched]
            return MockSupabaseResponse(data=[dict(row) for row in matched])

        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda row: str(row.get(column) or ""), reverse=desc)
        total = len(matched)
        if self._limit is not None:
            matched = matched[:self._limit]

        data = [dict(row) for row in matched]
        if self._is_single:
            return MockSupabaseResponse(data=data[0] if data else None, count=1 if data else 0)
        count = self._state.count if self._state.count is not None else total
        return MockSupabaseResponse(data=data, count=count)

    def _check_write(self, row: dict) -> None:
        for predicate, message in self._state.write_failures:
            if predicate(row):
                raise Exception(message)

    def _insert(self) -> list:
        items = self._payload if isinstance(self._payload, list) else [self._payload]
        inserted = []
        for item in items:
            row = dict(item)
            self._check_write(row)
            row.setdefault("id", str(uuid4()))
            row.setdefault("created_at", _now())
            row.setdefault("updated_at", _now())
            row.setdefault("active", True)
            self._state.rows.append(row)
            inserted.append(dict(row))
        return inserted

    def _update(self, matched: list) -> list:
        updated = []
        for row in matched:
            self._check_write({**row, **self._payload})
            row.update(self._payload)
            row["updated_at"] = _now()
            updated.append(dict(row))
        return updated


class MockSupabaseTable:
    """Mock Supabase table; every call starts a new query on the shared rows."""

    def __init__(self, state: MockTableState):
        self._state = state

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._state).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self._state).insert(data)

    def update(self, data):
        return MockSupabaseQuery(self._state).update(data)

    def delete(self):
        return MockSupabaseQuery(self._state).delete()


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockTableState] = {}

    def _state(self, table_name: str) -> MockTableState:
        if table_name not in self._tables:
            self._tables[table_name] = MockTableState()
        return self._tables[table_name]

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = MockTableState([dict(row) for row in data], count)

    def get_table_data(self, table_name: str) -> list:
        """Current rows of a table, including writes made by the code under test."""
        return self._state(table_name).rows

    def set_table_error(self, table_name: str, message: str = "connection reset"):
        """Make every query on a table raise."""
        self._state(table_name).error = message

    def fail_writes(self, table_name: str, predicate: Callable[[dict], bool], message: str = "write failed"):
        """Make inserts/updates of rows matching predicate raise."""
        self._state(table_name).write_failures.append((predicate, message))

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        return MockSupabaseTable(self._state(name))


# ===================
# FIXTURES
# ===================

@pytest.fixture(autouse=True)
def reset_service_singletons():
    """Drop cached service instances and previews between tests."""
    import services.product_service as product_service
    import services.category_service as category_service
    import services.upload_history_service as upload_history_service
    import services.import_service as import_service
    from services import preview_cache_service

    def reset():
        product_service._product_service = None
        category_service._service = None
        upload_history_service._service = None
        import_service._service = None
        preview_cache_service.clear_previews()

    reset()
    yield
    reset()


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "sku": "TEST", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with ExitStack() as stack:
        for target in DB_CLIENT_PATCH_TARGETS:
            stack.enter_context(patch(target, return_value=mock_supabase))
        yield mock_supabase


@pytest.fixture
def merchant_id() -> str:
    return "merchant-aaa"


@pytest.fixture
def other_merchant_id() -> str:
    return "merchant-bbb"


@pytest.fixture
def sample_categories() -> list:
    """Categories as stored."""
    from tests.factories import CategoryFactory

    return [
        CategoryFactory.create(id="cat-men", code="MEN-CLOTHING", name="Men's Clothing", name_ar="ملابس رجالية"),
        CategoryFactory.create(id="cat-women", code="WOMEN-CLOTHING", name="Women's Clothing", name_ar="ملابس نسائية"),
        CategoryFactory.create(id="cat-perfume", code="PERFUME", name="Perfume", name_ar="عطور"),
    ]


@pytest.fixture
def seeded_db(mock_db, mock_supabase, sample_categories):
    """Mock database with categories and an empty products table."""
    mock_supabase.set_table_data("categories", sample_categories)
    mock_supabase.set_table_data("products", [])
    mock_supabase.set_table_data("import_batches", [])
    return mock_supabase


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(seeded_db):
    """
    Create FastAPI test client with mocked, seeded database.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("products", [...])
            response = test_client_with_mock_db.get("/api/categories")
    """
    from fastapi.testclient import TestClient
    from main import app

    yield TestClient(app)
