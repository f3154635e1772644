# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides an in-memory stand-in for BigtableClient so service and API
#   tests run without a Bigtable instance
# =============================================================================

import os
import itertools
from typing import Iterable, Sequence

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("BIGTABLE_PROJECT_ID", "test-project")
os.environ.setdefault("BIGTABLE_INSTANCE_ID", "test-instance")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest

from core.models.filter import Filter, RowKeyPrefixFilter
from core.models.row import Cell, DeleteRow, Mutation, Row, SetCell
from lib.bigtable_client import BigtableClientError, split_key_range, to_row_filter
from lib.utils import from_bytes, to_bytes


# =============================================================================
# In-Memory Client
# =============================================================================

class FakeBigtableClient:
    """
    In-memory BigtableClient with the same method surface.

    Keeps tables and rows in dicts, honors per-family max versions, applies
    mutations atomically and returns scans in key order. Cell filters are
    validated through to_row_filter but not evaluated; a top-level row key
    range or row key prefix is applied.

    Set `fail_with` to make the next calls raise that error.
    """

    def __init__(self):
        self.tables: dict[str, dict[str, int]] = {}
        self.rows: dict[str, dict[bytes, list[Cell]]] = {}
        self.calls: list[str] = []
        self.last_scan: dict | None = None
        self.fail_with: Exception | None = None
        self.closed = False
        self._clock = itertools.count(1_700_000_000_000_000, 1000)

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    def _require_table(self, table_id: str) -> None:
        if table_id not in self.tables:
            raise BigtableClientError(
                message=f"404 Table not found: {table_id}",
                code="NOT_FOUND",
                details={"table_id": table_id},
            )

    def list_tables(self) -> list[str]:
        self._record("list_tables")
        return sorted(self.tables)

    def table_exists(self, table_id: str) -> bool:
        self._record("table_exists")
        return table_id in self.tables

    def create_table(self, table_id: str, families: dict[str, int]) -> bool:
        self._record("create_table")
        if table_id in self.tables:
            return False
        self.tables[table_id] = dict(families)
        self.rows[table_id] = {}
        return True

    def delete_table(self, table_id: str) -> bool:
        self._record("delete_table")
        if table_id not in self.tables:
            return False
        del self.tables[table_id]
        del self.rows[table_id]
        return True

    def read_row(self, table_id: str, row_key: str | bytes) -> Row | None:
        self._record("read_row")
        self._require_table(table_id)
        key = to_bytes(row_key)
        cells = self.rows[table_id].get(key)
        return Row(key=key, cells=tuple(cells)) if cells else None

    def read_rows(self, table_id: str, row_keys: Iterable[str | bytes]) -> dict[str, Row]:
        self._record("read_rows")
        self._require_table(table_id)
        result = {}
        for key in {to_bytes(k) for k in row_keys}:
            cells = self.rows[table_id].get(key)
            if cells:
                result[from_bytes(key)] = Row(key=key, cells=tuple(cells))
        return result

    def scan_rows(self, table_id: str, filter: Filter | None = None, limit: int | None = None) -> list[Row]:
        self._record("scan_rows")
        self.last_scan = {"table_id": table_id, "filter": filter, "limit": limit}
        self._require_table(table_id)

        key_range, cell_filter = split_key_range(filter)
        if cell_filter is not None:
            to_row_filter(cell_filter)

        rows = []
        for key in sorted(self.rows[table_id]):
            if key_range is not None and not (key_range[0] <= key < key_range[1]):
                continue
            if isinstance(cell_filter, RowKeyPrefixFilter) and not key.startswith(cell_filter.prefix):
                continue
            rows.append(Row(key=key, cells=tuple(self.rows[table_id][key])))
        return rows[:limit] if limit is not None else rows

    def mutate_row(self, table_id: str, row_key: str | bytes, mutations: Sequence[Mutation]) -> None:
        self._record("mutate_row")
        self._require_table(table_id)
        families = self.tables[table_id]
        key = to_bytes(row_key)

        # Validate everything first so a bad mutation leaves the row untouched
        for mutation in mutations:
            if isinstance(mutation, SetCell) and mutation.family not in families:
                raise BigtableClientError(
                    message=f"Unknown column family: {mutation.family}",
                    code="MUTATE_ROW_FAILED",
                )

        cells = list(self.rows[table_id].get(key, []))
        for mutation in mutations:
            if isinstance(mutation, DeleteRow):
                cells = []
                continue
            timestamp = mutation.timestamp_micros or next(self._clock)
            cells.insert(0, Cell(
                family=mutation.family,
                qualifier=mutation.qualifier,
                value=mutation.value,
                timestamp=timestamp,
            ))
            column = [c for c in cells if c.family == mutation.family and c.qualifier == mutation.qualifier]
            for stale in column[families[mutation.family]:]:
                cells.remove(stale)

        if cells:
            self.rows[table_id][key] = cells
        else:
            self.rows[table_id].pop(key, None)

    def close(self) -> None:
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_client():
    """Empty in-memory Bigtable client."""
    return FakeBigtableClient()


@pytest.fixture
def service(fake_client):
    """BigtableService over the in-memory client."""
    from core.services.bigtable_service import BigtableService

    svc = BigtableService(fake_client, max_workers=2)
    yield svc
    svc.close()


@pytest.fixture
def api_client(service):
    """
    FastAPI TestClient wired to the in-memory service.

    Lifespan is not run, so no real Bigtable clients are created.
    """
    from fastapi.testclient import TestClient

    from app.dependencies import get_bigtable_service
    from app.main import app

    app.dependency_overrides[get_bigtable_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_sdk_row():
    """Object shaped like a row returned by the Bigtable data client."""
    from types import SimpleNamespace

    return SimpleNamespace(
        row_key=b"r1",
        cells=[
            SimpleNamespace(family="cf", qualifier=b"q1", value=b"v2", timestamp_micros=2000),
            SimpleNamespace(family="cf", qualifier=b"q1", value=b"v1", timestamp_micros=1000),
        ],
    )
