# =============================================================================
# tests/test_bigtable_service.py - Bigtable Service Tests
# =============================================================================
# Tests for the async operation gateway in core/services/bigtable_service.py,
# run against the in-memory client from conftest.py:
# - Table lifecycle (idempotent create/delete)
# - Write/read round trips and absent rows
# - Scan ordering and limits
# - ValidationError before any remote call, BackendError for client failures
#
# Run with: poetry run pytest tests/test_bigtable_service.py -v
# =============================================================================

import asyncio
import logging
import threading
from unittest.mock import MagicMock

import pytest

from app.exceptions import BackendError, ValidationError
from core.models.row import DeleteRow, SetCell
from lib.bigtable_client import BigtableClientError
from lib.filters import (
    chain_filter,
    column_filter,
    family_filter,
    interleave_filter,
    row_key_prefix_filter,
    row_key_range_filter,
    timestamp_range_filter,
)


def run(coro):
    """Run a service coroutine to completion."""
    return asyncio.run(coro)


@pytest.fixture
def table(service):
    """A table "t1" with one family keeping a single version."""
    run(service.create_table("t1", {"cf": 1}))
    return "t1"


# =============================================================================
# Tables
# =============================================================================

class TestTables:
    """Table administration through the service."""

    @pytest.mark.parametrize("families", [{"cf": 1}, {"cf": 3, "meta": 1}, {"a": 10}])
    def test_create_then_exists(self, service, families):
        """A created table is reported as existing."""
        run(service.create_table("t1", families))

        assert run(service.table_exists("t1")) is True

    def test_create_twice_is_not_an_error(self, service, fake_client):
        """The second create is a no-op."""
        assert run(service.create_table("t1", {"cf": 1})) is True
        assert run(service.create_table("t1", {"cf": 5})) is False

        # The original definition is kept
        assert fake_client.tables["t1"] == {"cf": 1}

    def test_delete_missing_table_is_not_an_error(self, service):
        assert run(service.delete_table("nope")) is False

    def test_delete_table(self, service, table):
        assert run(service.delete_table(table)) is True
        assert run(service.table_exists(table)) is False

    def test_list_tables(self, service):
        run(service.create_table("b", {"cf": 1}))
        run(service.create_table("a", {"cf": 1}))

        assert run(service.list_tables()) == ["a", "b"]

    @pytest.mark.parametrize("families", [{}, {"cf": 0}, {"cf": -1}])
    def test_invalid_families_rejected_before_remote_call(self, service, fake_client, families):
        """Bad family definitions never reach the client."""
        with pytest.raises(ValidationError):
            run(service.create_table("t1", families))

        assert fake_client.calls == []


# =============================================================================
# Reads and Writes
# =============================================================================

class TestReadWrite:
    """Single-row reads and writes."""

    def test_example_flow(self, service, table):
        """Write, read, delete, read again."""
        # Arrange
        run(service.write_value(table, "r1", "cf", "q1", "v1"))

        # Act
        row = run(service.read_row(table, "r1"))

        # Assert
        response = row.to_response()
        assert response["key"] == "r1"
        assert len(response["cells"]) == 1
        cell = response["cells"][0]
        assert (cell["family"], cell["qualifier"], cell["value"]) == ("cf", "q1", "v1")
        assert cell["timestamp"] > 0

        run(service.delete_row(table, "r1"))
        assert run(service.read_row(table, "r1")) is None

    @pytest.mark.parametrize("row_key,qualifier,value", [
        ("r1", "q1", "v1"),
        ("user#42", "name", "Ada"),
        ("k", "q", ""),
        ("ключ", "q", "значение"),
    ])
    def test_read_after_write(self, service, table, row_key, qualifier, value):
        run(service.write_value(table, row_key, "cf", qualifier, value))

        row = run(service.read_row(table, row_key))

        assert [c.value for c in row.cells_for("cf", qualifier)] == [value.encode("utf-8")]

    def test_read_absent_row(self, service, table):
        """A missing row is None, not an error."""
        assert run(service.read_row(table, "missing")) is None

    def test_overwrite_keeps_max_versions(self, service, table):
        run(service.write_value(table, "r1", "cf", "q1", "v1"))
        run(service.write_value(table, "r1", "cf", "q1", "v2"))

        row = run(service.read_row(table, "r1"))

        assert [c.value for c in row.cells_for("cf", "q1")] == [b"v2"]

    def test_write_row_applies_all_mutations(self, service, table):
        run(service.write_row(table, "r1", [
            SetCell(family="cf", qualifier=b"a", value=b"1"),
            SetCell(family="cf", qualifier=b"b", value=b"2"),
        ]))

        row = run(service.read_row(table, "r1"))

        assert {c.qualifier for c in row.cells} == {b"a", b"b"}

    def test_write_row_is_all_or_nothing(self, service, table):
        """A rejected mutation leaves the row untouched."""
        with pytest.raises(BackendError):
            run(service.write_row(table, "r1", [
                SetCell(family="cf", qualifier=b"a", value=b"1"),
                SetCell(family="unknown", qualifier=b"b", value=b"2"),
            ]))

        assert run(service.read_row(table, "r1")) is None

    def test_write_row_requires_mutations(self, service, fake_client, table):
        fake_client.calls.clear()

        with pytest.raises(ValidationError):
            run(service.write_row(table, "r1", []))

        assert fake_client.calls == []

    def test_delete_missing_row_is_noop(self, service, table):
        run(service.delete_row(table, "missing"))

    def test_delete_row_via_mutation(self, service, table):
        run(service.write_value(table, "r1", "cf", "q1", "v1"))
        run(service.write_row(table, "r1", [DeleteRow()]))

        assert run(service.read_row(table, "r1")) is None

    def test_read_rows(self, service, table):
        run(service.write_value(table, "a", "cf", "q", "1"))
        run(service.write_value(table, "b", "cf", "q", "2"))

        rows = run(service.read_rows(table, ["a", "b", "missing"]))

        assert sorted(rows) == ["a", "b"]
        assert rows["b"].cells[0].value == b"2"


# =============================================================================
# Scans
# =============================================================================

class TestScan:
    """Scans, limits and filters."""

    @pytest.fixture
    def populated(self, service, table):
        for key in ["c", "a", "e", "b", "d"]:
            run(service.write_value(table, key, "cf", "q", key.upper()))
        return table

    @pytest.mark.parametrize("limit", [1, 2, 5, 10])
    def test_limit_and_order(self, service, populated, limit):
        """At most `limit` rows, ascending by key."""
        rows = run(service.scan_rows(populated, limit=limit))

        keys = [r.key for r in rows]
        assert len(keys) == min(limit, 5)
        assert keys == sorted(keys)
        assert keys[0] == b"a"

    def test_no_limit_reads_everything(self, service, populated):
        rows = run(service.scan_rows(populated))
        assert [r.key for r in rows] == [b"a", b"b", b"c", b"d", b"e"]

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_rejected(self, service, fake_client, populated, limit):
        fake_client.calls.clear()

        with pytest.raises(ValidationError):
            run(service.scan_rows(populated, limit=limit))

        assert fake_client.calls == []

    def test_key_range(self, service, populated):
        rows = run(service.scan_rows(populated, filter=row_key_range_filter("b", "d")))
        assert [r.key for r in rows] == [b"b", b"c"]

    def test_key_prefix(self, service, table):
        for key in ["user#1", "user#2", "order#1"]:
            run(service.write_value(table, key, "cf", "q", "x"))

        rows = run(service.scan_rows(table, filter=row_key_prefix_filter("user#")))

        assert [r.key for r in rows] == [b"user#1", b"user#2"]

    def test_filter_passed_through(self, service, fake_client, populated):
        f = chain_filter(row_key_range_filter("a", "c"), column_filter("cf", "q"))

        run(service.scan_rows(populated, filter=f, limit=3))

        assert fake_client.last_scan == {"table_id": populated, "filter": f, "limit": 3}

    def test_nested_key_range_is_validation_error(self, service, populated):
        """Ranges the backend can't evaluate are the caller's mistake."""
        f = interleave_filter(row_key_range_filter("a", "b"), family_filter("cf"))

        with pytest.raises(ValidationError):
            run(service.scan_rows(populated, filter=f))

    def test_unbounded_timestamp_end(self, service, populated):
        """An end of 2**63 - 1 is accepted as "no upper bound"."""
        rows = run(service.scan_rows(populated, filter=timestamp_range_filter(0, 2**63 - 1)))

        assert [r.key for r in rows] == [b"a", b"b", b"c", b"d", b"e"]


# =============================================================================
# Failures and Concurrency
# =============================================================================

class TestFailures:
    """Client failures surface as BackendError."""

    def test_missing_table_is_backend_error(self, service):
        with pytest.raises(BackendError) as exc_info:
            run(service.write_value("nope", "r1", "cf", "q1", "v1"))

        assert "Table not found" in exc_info.value.message
        assert exc_info.value.status_code == 500
        assert exc_info.value.details["operation"] == "write_row"

    def test_client_failure_keeps_message(self, service, fake_client):
        fake_client.fail_with = BigtableClientError("UNAVAILABLE: connection reset", code="LIST_TABLES_FAILED")

        with pytest.raises(BackendError) as exc_info:
            run(service.list_tables())

        assert exc_info.value.message == "UNAVAILABLE: connection reset"
        assert exc_info.value.operation == "list_tables"

    def test_invalid_mutation_is_validation_error(self, service, table, fake_client):
        """Mutations the storage SDK refuses are the caller's mistake."""
        fake_client.fail_with = BigtableClientError("Invalid mutation: bad timestamp", code="INVALID_MUTATION")

        with pytest.raises(ValidationError) as exc_info:
            run(service.write_value(table, "r1", "cf", "q1", "v1"))

        assert exc_info.value.status_code == 400
        assert "bad timestamp" in exc_info.value.message

    def test_backend_failure_is_logged_with_code(self, service, fake_client, caplog):
        fake_client.fail_with = BigtableClientError("connection reset", code="LIST_TABLES_FAILED")

        with caplog.at_level(logging.ERROR, logger="core.services.bigtable_service"):
            with pytest.raises(BackendError):
                run(service.list_tables())

        assert "[LIST_TABLES_FAILED] connection reset" in caplog.text

    def test_concurrent_writes_to_different_rows(self, service, table):
        """Many calls in flight at once all complete."""
        async def write_all():
            await asyncio.gather(*(
                service.write_value(table, f"r{i:02d}", "cf", "q", str(i))
                for i in range(20)
            ))
            return await service.scan_rows(table)

        rows = run(write_all())

        assert len(rows) == 20
        assert rows[0].key == b"r00"
        assert rows[-1].key == b"r19"

    def test_close_closes_client(self, fake_client):
        from core.services.bigtable_service import BigtableService

        svc = BigtableService(fake_client, max_workers=1)
        svc.close()

        assert fake_client.closed is True

    def test_close_waits_for_in_flight_calls(self):
        """The client stays open until queued calls have finished."""
        from core.services.bigtable_service import BigtableService

        events = []
        started = threading.Event()
        client = MagicMock()
        client.close.side_effect = lambda: events.append("close")

        def slow_call():
            started.set()
            threading.Event().wait(0.05)
            events.append("call")

        svc = BigtableService(client, max_workers=1)
        svc._executor.submit(slow_call)
        started.wait(1)
        svc.close()

        assert events == ["call", "close"]
