# =============================================================================
# lib/bigtable_client.py - Bigtable Client Wrapper
# =============================================================================
# This module wraps the two long-lived Google Cloud Bigtable clients:
# - BigtableTableAdminClient for table management (list/create/delete/exists)
# - BigtableDataClient for row reads, writes and scans
#
# Every method is blocking and issues one remote call (create/delete table
# check existence first). SDK failures are re-raised as BigtableClientError
# carrying the original message. Retries and channel pooling are left to
# the SDK; this wrapper only hands it the configured deadlines and backoff.
#
# Usage:
#   from lib.bigtable_client import BigtableClient
#   client = BigtableClient.from_settings(settings)
#   row = client.read_row("orders", "order#0001")
#   client.close()
# =============================================================================

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Iterator, Sequence

import grpc
from google.api_core import exceptions as core_exceptions
from google.api_core.retry import Retry, if_exception_type
from google.auth.credentials import AnonymousCredentials
from google.cloud.bigtable.data import (
    BigtableDataClient,
    DeleteAllFromRow,
    ReadRowsQuery,
    RowRange,
    SetCell as SdkSetCell,
)
from google.cloud.bigtable.data import row_filters
from google.cloud.bigtable_admin_v2 import BigtableTableAdminClient
from google.cloud.bigtable_admin_v2.services.bigtable_table_admin.transports import (
    BigtableTableAdminGrpcTransport,
)
from google.cloud.bigtable_admin_v2.types import ColumnFamily, GcRule, Table
from google.oauth2 import service_account

from app.config import RetrySettings, Settings
from core.models.filter import (
    CellsPerColumnFilter,
    CellsPerRowFilter,
    ChainFilter,
    FamilyFilter,
    Filter,
    InterleaveFilter,
    QualifierFilter,
    RowKeyPrefixFilter,
    RowKeyRangeFilter,
    TimestampRangeFilter,
    ValueFilter,
    ValuePrefixFilter,
)
from core.models.row import Cell, DeleteRow, Mutation, Row, SetCell
from lib.utils import ApplicationError, from_bytes, to_bytes

# Set up logging for this module
logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MAX_MICROS = (datetime.max.replace(tzinfo=timezone.utc) - _EPOCH) // timedelta(microseconds=1)

# Admin calls are retried only on errors that are safe to repeat
_RETRYABLE_ADMIN_ERRORS = if_exception_type(
    core_exceptions.ServiceUnavailable,
    core_exceptions.DeadlineExceeded,
)


class BigtableClientError(ApplicationError):
    """
    Error during Bigtable operations.

    Wraps whatever the SDK raised, keeping its message.
    """

    def __init__(
        self,
        message: str,
        code: str = "BIGTABLE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, suggestion=suggestion, details=details)


# =============================================================================
# Filter Conversion
# =============================================================================

def _literal_regex(value: bytes) -> bytes:
    """
    Escape bytes so RE2 matches them literally.

    Alphanumerics, underscore and non-ASCII bytes pass through; NUL
    becomes \\x00; everything else gets a backslash.
    """
    out = bytearray()
    for byte in value:
        char = bytes([byte])
        if char.isalnum() or char == b"_" or byte & 0x80:
            out += char
        elif byte == 0:
            out += b"\\x00"
        else:
            out += b"\\" + char
    return bytes(out)


def _prefix_regex(prefix: bytes) -> bytes:
    # \C matches any byte, including newlines
    return _literal_regex(prefix) + b"\\C*"


def _micros_to_datetime(micros: int) -> datetime:
    # Values past datetime.max (e.g. 2**63 - 1 as "forever") clamp to it
    return _EPOCH + timedelta(microseconds=min(micros, _MAX_MICROS))


def to_row_filter(node: Filter) -> row_filters.RowFilter:
    """
    Convert a filter tree into the SDK's row filter objects.

    Raises:
        BigtableClientError: If the tree contains a row key range, which
            the storage service cannot evaluate as a cell filter
    """
    if isinstance(node, FamilyFilter):
        return row_filters.FamilyNameRegexFilter(
            _literal_regex(node.family.encode("utf-8")).decode("utf-8")
        )
    if isinstance(node, QualifierFilter):
        return row_filters.ColumnQualifierRegexFilter(_literal_regex(node.qualifier))
    if isinstance(node, ValueFilter):
        return row_filters.ValueRegexFilter(_literal_regex(node.value))
    if isinstance(node, ValuePrefixFilter):
        return row_filters.ValueRegexFilter(_prefix_regex(node.prefix))
    if isinstance(node, RowKeyPrefixFilter):
        return row_filters.RowKeyRegexFilter(_prefix_regex(node.prefix))
    if isinstance(node, TimestampRangeFilter):
        return row_filters.TimestampRangeFilter(
            start=_micros_to_datetime(node.start_micros),
            end=_micros_to_datetime(node.end_micros),
        )
    if isinstance(node, CellsPerRowFilter):
        return row_filters.CellsRowLimitFilter(node.limit)
    if isinstance(node, CellsPerColumnFilter):
        return row_filters.CellsColumnLimitFilter(node.versions)
    if isinstance(node, ChainFilter):
        return row_filters.RowFilterChain(filters=[to_row_filter(f) for f in node.filters])
    if isinstance(node, InterleaveFilter):
        return row_filters.RowFilterUnion(filters=[to_row_filter(f) for f in node.filters])
    if isinstance(node, RowKeyRangeFilter):
        raise BigtableClientError(
            message="Row key ranges can only appear at the top level of a scan filter",
            code="UNSUPPORTED_FILTER",
            suggestion="Use the range as the whole filter or as a direct member of a top-level chain",
            details={"start_key": from_bytes(node.start_key), "end_key": from_bytes(node.end_key)},
        )
    raise BigtableClientError(
        message=f"Unknown filter type: {type(node).__name__}",
        code="UNSUPPORTED_FILTER",
    )


def split_key_range(node: Filter | None) -> tuple[tuple[bytes, bytes] | None, Filter | None]:
    """
    Pull row key ranges out of a scan filter.

    A range given as the whole filter, or as direct members of a top-level
    chain, becomes a query row range. Several ranges in one chain are
    intersected, since chain means AND.

    Returns:
        (start_key, end_key) or None, and the remaining cell filter or None
    """
    if node is None:
        return None, None
    if isinstance(node, RowKeyRangeFilter):
        return (node.start_key, node.end_key), None
    if not isinstance(node, ChainFilter):
        return None, node

    key_range: tuple[bytes, bytes] | None = None
    rest: list[Filter] = []
    for member in node.filters:
        if isinstance(member, RowKeyRangeFilter):
            if key_range is None:
                key_range = (member.start_key, member.end_key)
            else:
                key_range = (max(key_range[0], member.start_key), min(key_range[1], member.end_key))
        else:
            rest.append(member)

    if key_range is None:
        return None, node
    if not rest:
        return key_range, None
    if len(rest) == 1:
        return key_range, rest[0]
    return key_range, ChainFilter(filters=tuple(rest))


# =============================================================================
# Row and Mutation Conversion
# =============================================================================

def row_from_sdk(sdk_row: Any) -> Row:
    """Snapshot an SDK row into the immutable Row model."""
    return Row(
        key=sdk_row.row_key,
        cells=tuple(
            Cell(
                family=cell.family,
                qualifier=cell.qualifier,
                value=cell.value,
                timestamp=cell.timestamp_micros,
            )
            for cell in sdk_row.cells
        ),
    )


def mutation_to_sdk(mutation: Mutation) -> Any:
    if isinstance(mutation, SetCell):
        return SdkSetCell(
            family=mutation.family,
            qualifier=mutation.qualifier,
            new_value=mutation.value,
            timestamp_micros=mutation.timestamp_micros,
        )
    if isinstance(mutation, DeleteRow):
        return DeleteAllFromRow()
    raise BigtableClientError(
        message=f"Unknown mutation type: {type(mutation).__name__}",
        code="UNSUPPORTED_MUTATION",
    )


# =============================================================================
# Client Wrapper
# =============================================================================

class BigtableClient:
    """
    Blocking wrapper around the Bigtable admin and data clients.

    One instance is created at startup and shared by all requests. The SDK
    clients are thread-safe; the only local state is a cache of table
    handles, guarded by a lock. Table existence is never cached.

    Example:
        client = BigtableClient.from_settings(settings)
        client.create_table("orders", {"cf": 1})
        client.mutate_row("orders", "order#0001", [SetCell(family="cf", qualifier=b"status", value=b"new")])
    """

    def __init__(
        self,
        admin_client: Any,
        data_client: Any,
        project_id: str,
        instance_id: str,
        timeout: float = 60.0,
        retry: RetrySettings | None = None,
    ):
        self._admin_client = admin_client
        self._data_client = data_client
        self.project_id = project_id
        self.instance_id = instance_id
        self._timeout = timeout
        self._retry_settings = retry
        self._admin_retry = self._build_admin_retry(retry, timeout)
        self._tables: dict[str, Any] = {}
        self._tables_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "BigtableClient":
        """
        Create the admin and data clients from application settings.

        Raises:
            BigtableClientError: If client creation fails
        """
        try:
            if settings.BIGTABLE_EMULATOR_HOST:
                # The data client reads the emulator address from the environment
                os.environ["BIGTABLE_EMULATOR_HOST"] = settings.BIGTABLE_EMULATOR_HOST
                credentials = AnonymousCredentials()
                admin_client = BigtableTableAdminClient(
                    transport=BigtableTableAdminGrpcTransport(
                        channel=grpc.insecure_channel(settings.BIGTABLE_EMULATOR_HOST)
                    )
                )
            else:
                credentials = None
                if settings.BIGTABLE_CREDENTIALS_PATH:
                    credentials = service_account.Credentials.from_service_account_file(
                        settings.BIGTABLE_CREDENTIALS_PATH
                    )
                admin_client = BigtableTableAdminClient(credentials=credentials)

            data_client = BigtableDataClient(
                project=settings.BIGTABLE_PROJECT_ID,
                credentials=credentials,
            )
        except Exception as e:
            logger.error(f"Failed to initialize Bigtable clients: {e}")
            raise BigtableClientError(
                message=f"Failed to create Bigtable clients: {e}",
                code="CLIENT_INIT_FAILED",
                suggestion="Check BIGTABLE_PROJECT_ID, BIGTABLE_INSTANCE_ID and BIGTABLE_CREDENTIALS_PATH in your .env file",
            ) from e

        logger.info(
            f"Connected to Bigtable instance {settings.BIGTABLE_INSTANCE_ID} "
            f"in project {settings.BIGTABLE_PROJECT_ID} "
            f"(channels/cpu={settings.BIGTABLE_CHANNELS_PER_CPU}, "
            f"max requests/channel={settings.BIGTABLE_MAX_REQUESTS_PER_CHANNEL}, "
            f"timeout={settings.BIGTABLE_TIMEOUT_MS}ms, "
            f"max retries={settings.BIGTABLE_MAX_RETRIES})"
        )
        return cls(
            admin_client=admin_client,
            data_client=data_client,
            project_id=settings.BIGTABLE_PROJECT_ID,
            instance_id=settings.BIGTABLE_INSTANCE_ID,
            timeout=settings.timeout_seconds,
            retry=settings.retry_settings,
        )

    @staticmethod
    def _build_admin_retry(retry: RetrySettings | None, timeout: float) -> Retry | None:
        if retry is None or retry.max_retries == 0:
            return None
        return Retry(
            predicate=_RETRYABLE_ADMIN_ERRORS,
            initial=retry.initial_delay,
            maximum=retry.max_delay,
            multiplier=retry.multiplier,
            timeout=retry.deadline or timeout,
        )

    @property
    def _attempt_timeout(self) -> float:
        # Split the operation deadline across the allowed attempts
        retries = self._retry_settings.max_retries if self._retry_settings else 0
        return self._timeout / (retries + 1)

    @property
    def _instance_path(self) -> str:
        return f"projects/{self.project_id}/instances/{self.instance_id}"

    def _table_path(self, table_id: str) -> str:
        return f"{self._instance_path}/tables/{table_id}"

    @contextmanager
    def _table(self, table_id: str) -> Iterator[Any]:
        """
        Yield the data-plane handle for a table.

        A new handle is cached only after a call through it succeeds, so
        requests against unknown tables leave nothing behind. A new handle
        whose call fails is closed.
        """
        with self._tables_lock:
            table = self._tables.get(table_id)
        if table is not None:
            yield table
            return

        table = self._data_client.get_table(self.instance_id, table_id)
        try:
            yield table
        except Exception:
            table.close()
            raise

        with self._tables_lock:
            kept = self._tables.setdefault(table_id, table)
        if kept is not table:
            # Another thread cached one first
            table.close()

    def _data_call_options(self) -> dict[str, float]:
        return {
            "operation_timeout": self._timeout,
            "attempt_timeout": self._attempt_timeout,
        }

    def _admin_call_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"timeout": self._timeout}
        if self._admin_retry is not None:
            options["retry"] = self._admin_retry
        return options

    # -------------------------------------------------------------------------
    # Table Administration
    # -------------------------------------------------------------------------

    def list_tables(self) -> list[str]:
        """
        List table IDs in the instance.

        Returns:
            Table IDs (the last segment of each table's resource name)

        Raises:
            BigtableClientError: If the request fails
        """
        try:
            tables = self._admin_client.list_tables(
                request={"parent": self._instance_path},
                **self._admin_call_options(),
            )
            return [table.name.rsplit("/", 1)[-1] for table in tables]
        except Exception as e:
            raise BigtableClientError(
                message=f"Failed to list tables: {e}",
                code="LIST_TABLES_FAILED",
                details={"instance_id": self.instance_id},
            ) from e

    def table_exists(self, table_id: str) -> bool:
        """
        Check whether a table exists.

        Always a live call; the answer is never cached.
        """
        try:
            self._admin_client.get_table(
                request={"name": self._table_path(table_id), "view": Table.View.NAME_ONLY},
                **self._admin_call_options(),
            )
            return True
        except core_exceptions.NotFound:
            return False
        except Exception as e:
            raise BigtableClientError(
                message=f"Failed to check if table exists: {e}",
                code="TABLE_EXISTS_FAILED",
                details={"table_id": table_id},
            ) from e

    def create_table(self, table_id: str, families: dict[str, int]) -> bool:
        """
        Create a table unless it already exists.

        An existing table is left untouched and counts as success.

        Args:
            table_id: Table to create
            families: Column family name -> max versions kept per column

        Returns:
            True if the table was created, False if it already existed
        """
        if self.table_exists(table_id):
            logger.info(f"Table {table_id} already exists")
            return False

        table = Table(
            column_families={
                family: ColumnFamily(gc_rule=GcRule(max_num_versions=max_versions))
                for family, max_versions in families.items()
            }
        )
        try:
            self._admin_client.create_table(
                request={"parent": self._instance_path, "table_id": table_id, "table": table},
                **self._admin_call_options(),
            )
        except Exception as e:
            raise BigtableClientError(
                message=f"Failed to create table: {e}",
                code="CREATE_TABLE_FAILED",
                details={"table_id": table_id, "families": families},
            ) from e

        logger.info(f"Created table {table_id} with families {sorted(families)}")
        return True

    def delete_table(self, table_id: str) -> bool:
        """
        Delete a table if it exists.

        A missing table counts as success.

        Returns:
            True if the table was deleted, False if it did not exist
        """
        if not self.table_exists(table_id):
            logger.info(f"Table {table_id} does not exist")
            return False

        try:
            self._admin_client.delete_table(
                request={"name": self._table_path(table_id)},
                **self._admin_call_options(),
            )
        except Exception as e:
            raise BigtableClientError(
                message=f"Failed to delete table: {e}",
                code="DELETE_TABLE_FAILED",
                details={"table_id": table_id},
            ) from e

        with self._tables_lock:
            self._tables.pop(table_id, None)
        logger.info(f"Deleted table {table_id}")
        return True

    # -------------------------------------------------------------------------
    # Row Reads
    # -------------------------------------------------------------------------

    def read_row(self, table_id: str, row_key: str | bytes) -> Row | None:
        """
        Read one row.

        Returns:
            The row, or None if it does not exist
        """
        try:
            with self._table(table_id) as table:
                sdk_row = table.read_row(to_bytes(row_key), **self._data_call_options())
        except core_exceptions.NotFound:
            return None
        except Exception as e:
            raise BigtableClientError(
                message=f"Failed to read row: {e}",
                code="READ_ROW_FAILED",
                details={"table_id": table_id, "row_key": from_bytes(row_key)},
            ) from e

        return row_from_sdk(sdk_row) if sdk_row is not None else None

    def read_rows(self, table_id: str, row_keys: Iterable[str | bytes]) -> dict[str, Row]:
        """
        Read several rows in one query.

        Rows that don't exist are simply absent from the result.

        Returns:
            Row key (decoded) -> Row
        """
        keys = sorted({to_bytes(key) for key in row_keys})
        if not keys:
            # An empty key set would turn into a full table scan
            return {}

        try:
            with self._table(table_id) as table:
                sdk_rows = table.read_rows(
                    ReadRowsQuery(row_keys=keys),
                    **self._data_call_options(),
                )
                return {from_bytes(sdk_row.row_key): row_from_sdk(sdk_row) for sdk_row in sdk_rows}
        except Exception as e:
            raise BigtableClientError(
                message=f"Failed to read rows: {e}",
                code="READ_ROWS_FAILED",
                details={"table_id": table_id, "row_count": len(keys)},
            ) from e

    def scan_rows(
        self,
        table_id: str,
        filter: Filter | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """
        Scan rows in key order.

        Args:
            table_id: Table to scan
            filter: Optional filter tree; None scans the whole table
            limit: Optional cap on the number of rows returned

        Returns:
            Rows in ascending key order
        """
        key_range, cell_filter = split_key_range(filter)
        if key_range is not None and key_range[0] >= key_range[1]:
            logger.debug(f"Empty row key range on {table_id}, skipping scan")
            return []

        try:
            row_filter = to_row_filter(cell_filter) if cell_filter is not None else None
            row_ranges = None
            if key_range is not None:
                row_ranges = [RowRange(start_key=key_range[0], end_key=key_range[1])]
            query = ReadRowsQuery(row_ranges=row_ranges, limit=limit, row_filter=row_filter)
        except (TypeError, ValueError, OverflowError) as e:
            raise BigtableClientError(
                message=f"Invalid scan filter: {e}",
                code="INVALID_FILTER",
                details={"table_id": table_id},
            ) from e

        try:
            with self._table(table_id) as table:
                sdk_rows = table.read_rows(query, **self._data_call_options())
                rows = [row_from_sdk(sdk_row) for sdk_row in sdk_rows]
        except Exception as e:
            raise BigtableClientError(
                message=f"Failed to scan rows: {e}",
                code="SCAN_ROWS_FAILED",
                details={"table_id": table_id, "limit": limit},
            ) from e

        logger.debug(f"Scanned {len(rows)} rows from {table_id}")
        return rows

    # -------------------------------------------------------------------------
    # Row Writes
    # -------------------------------------------------------------------------

    def mutate_row(self, table_id: str, row_key: str | bytes, mutations: Sequence[Mutation]) -> None:
        """
        Apply mutations to one row atomically.

        Either every mutation is applied or none is.
        """
        try:
            sdk_mutations = [mutation_to_sdk(m) for m in mutations]
        except (TypeError, ValueError) as e:
            raise BigtableClientError(
                message=f"Invalid mutation: {e}",
                code="INVALID_MUTATION",
                details={"table_id": table_id, "row_key": from_bytes(row_key)},
            ) from e

        try:
            with self._table(table_id) as table:
                table.mutate_row(
                    to_bytes(row_key),
                    sdk_mutations,
                    **self._data_call_options(),
                )
        except Exception as e:
            raise BigtableClientError(
                message=f"Failed to mutate row: {e}",
                code="MUTATE_ROW_FAILED",
                details={"table_id": table_id, "row_key": from_bytes(row_key)},
            ) from e

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Release pooled connections held by both clients."""
        with self._tables_lock:
            self._tables.clear()
        try:
            self._data_client.close()
            self._admin_client.transport.close()
            logger.info("Bigtable clients closed")
        except Exception as e:
            logger.error(f"Error closing Bigtable clients: {e}")
