"""
Shared test fixtures.

Provides a mock Supabase client, an in-memory planning store and a
planning board service wired to a static order feed.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings need these before main.py is imported
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import copy
import pytest
from typing import Generator

from models.planning import PlanningSnapshot
from services.planning_store import PlanningStore
from services.planning_board_service import PlanningBoardService
from services.completion_service import CompletionPolicy
from integrations.order_feed import StaticOrderSource
from tests.factories import OrderFactory, BoardFactory


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else None)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, data: list = None, count: int = None, error: Exception = None):
        self._data = data or []
        self._count = count
        self._error = error
        self._filters = []

    def select(self, *args, **kwargs):
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._error:
            raise self._error
        data = [
            row for row in self._data
            if all(row.get(column) == value for column, value in self._filters)
        ]
        return MockSupabaseResponse(
            data=data,
            count=self._count if self._count is not None else len(data)
        )


class MockSupabaseRpc:
    """Mock rpc() call: records params, returns or raises."""

    def __init__(self, client, name: str, params: dict):
        self._client = client
        self._name = name
        self._params = params

    def execute(self) -> MockSupabaseResponse:
        self._client.rpc_calls.append((self._name, self._params))
        if self._client.rpc_error:
            raise self._client.rpc_error
        return MockSupabaseResponse(data=self._client.rpc_result)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self.rpc_calls = []
        self.rpc_result = 1
        self.rpc_error = None

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count, "error": None}

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self._tables[table_name] = {"data": [], "count": None, "error": error}

    def table(self, name: str) -> MockSupabaseQuery:
        """Get mock table query."""
        config = self._tables.get(name, {"data": [], "count": None, "error": None})
        return MockSupabaseQuery(list(config["data"]), config["count"], config["error"])

    def rpc(self, name: str, params: dict) -> MockSupabaseRpc:
        return MockSupabaseRpc(self, name, params)


# ===================
# IN-MEMORY STORE
# ===================

class InMemoryPlanningStore(PlanningStore):
    """
    Planning store kept in a PlanningSnapshot.

    Commits replace the stored board; fail_on_commit simulates a store
    failure after the work was computed.
    """

    def __init__(self, snapshot: PlanningSnapshot = None):
        self.board = snapshot or PlanningSnapshot()
        self.commits = 0
        self.fail_on_commit: Exception = None
        self.closed = False

    def load_snapshot(self) -> PlanningSnapshot:
        return copy.deepcopy(self.board)

    def commit(self, original: PlanningSnapshot, updated: PlanningSnapshot) -> int:
        if self.fail_on_commit:
            raise self.fail_on_commit
        stored = copy.deepcopy(updated)
        stored.revision = original.revision + 1
        self.board = stored
        self.commits += 1
        return stored.revision

    def close(self) -> None:
        self.closed = True


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("loads", [
                {"order_id": 1, "load_name": "A"}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def memory_store() -> InMemoryPlanningStore:
    """Empty in-memory store with two paused outfeeds."""
    return InMemoryPlanningStore(BoardFactory.create(outfeeds={1: "PAUSED", 2: "PAUSED"}))


@pytest.fixture
def feed_rows() -> list[dict]:
    """Feed rows used by the planning board fixture; tests append to it."""
    return []


@pytest.fixture
def planning_board(memory_store, feed_rows) -> PlanningBoardService:
    """PlanningBoardService over the in-memory store and a static feed."""
    return PlanningBoardService(
        store=memory_store,
        order_source=StaticOrderSource(feed_rows),
        completion_policy=CompletionPolicy.RATIO,
    )


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(planning_board) -> Generator:
    """
    FastAPI test client with the planning board wired to the in-memory store.

    Usage:
        def test_endpoint(test_client, memory_store):
            response = test_client.get("/api/state")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    app.state.planning_board = planning_board
    yield TestClient(app)
    del app.state.planning_board


@pytest.fixture
def sample_order_row() -> dict:
    """One open, unassigned feed row."""
    return OrderFactory.create(order_id=5, standard_id="S1")
