# =============================================================================
# core/services/bigtable_service.py - Bigtable Operation Gateway
# =============================================================================
# Exposes table and row operations as coroutines. Each call runs exactly one
# blocking BigtableClient job on a shared fixed-size thread pool, so request
# handlers never block the event loop.
#
# Failure policy:
# - Bad input is rejected with ValidationError before any remote call
# - Every storage client failure is re-raised as BackendError with the
#   original message; there are no retries at this layer
# - Creating an existing table and deleting a missing one both succeed
#
# Usage:
#   service = BigtableService.from_settings(settings)
#   await service.write_value("orders", "order#0001", "cf", "status", "new")
#   row = await service.read_row("orders", "order#0001")
#   service.close()
# =============================================================================

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Iterable, Sequence, TypeVar

import pydantic

from app.config import Settings
from app.exceptions import BackendError, ValidationError
from core.models.filter import Filter
from core.models.row import DeleteRow, Mutation, Row, SetCell, TableDefinition
from lib.bigtable_client import BigtableClient, BigtableClientError
from lib.utils import to_bytes

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Client error codes caused by the caller's input rather than the backend
_CALLER_ERROR_CODES = {"UNSUPPORTED_FILTER", "UNSUPPORTED_MUTATION", "INVALID_FILTER", "INVALID_MUTATION"}


class BigtableService:
    """
    Async gateway over the blocking Bigtable client.

    One instance is created at startup and shared by all requests.
    No locks are held across calls; concurrent writes to the same row are
    not ordered. Use write_row with several mutations when they must land
    together.
    """

    def __init__(self, client: BigtableClient, max_workers: int):
        self._client = client
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="bigtable",
        )
        logger.info(f"Bigtable worker pool started with {max_workers} threads")

    @classmethod
    def from_settings(cls, settings: Settings) -> "BigtableService":
        """Build the client and worker pool from application settings."""
        return cls(BigtableClient.from_settings(settings), settings.worker_pool_size)

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        """
        Run one blocking client call on the worker pool.

        Raises:
            ValidationError: If the client rejected the input itself
            BackendError: For any other client failure
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, partial(fn, *args))
        except BigtableClientError as e:
            if e.code in _CALLER_ERROR_CODES:
                raise ValidationError(e.message, details=e.details) from e
            logger.error(f"Error during {operation}: {e}")
            raise BackendError(e.message, operation, details=e.details) from e

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    async def list_tables(self) -> list[str]:
        """List all table IDs in the instance."""
        return await self._run("list_tables", self._client.list_tables)

    async def table_exists(self, table_id: str) -> bool:
        """Check whether a table exists (always a live round-trip)."""
        return await self._run("table_exists", self._client.table_exists, table_id)

    async def create_table(self, table_id: str, families: dict[str, int]) -> bool:
        """
        Create a table with the given column families.

        Args:
            table_id: Table to create
            families: Column family name -> max versions per column

        Returns:
            True if created, False if the table already existed (not an error)

        Raises:
            ValidationError: If families is empty or a max version count is not positive
            BackendError: If the storage call fails
        """
        try:
            definition = TableDefinition(table_id=table_id, families=families)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid table definition: " + "; ".join(err["msg"] for err in e.errors()),
                details={"table_id": table_id},
            ) from e

        return await self._run("create_table", self._client.create_table, definition.table_id, dict(definition.families))

    async def delete_table(self, table_id: str) -> bool:
        """
        Delete a table.

        Returns:
            True if deleted, False if it did not exist (not an error)
        """
        return await self._run("delete_table", self._client.delete_table, table_id)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def read_row(self, table_id: str, row_key: str | bytes) -> Row | None:
        """Read one row; None when it doesn't exist."""
        return await self._run("read_row", self._client.read_row, table_id, row_key)

    async def read_rows(self, table_id: str, row_keys: Iterable[str | bytes]) -> dict[str, Row]:
        """
        Read several rows at once.

        Missing rows are omitted from the mapping.
        """
        return await self._run("read_rows", self._client.read_rows, table_id, list(row_keys))

    async def scan_rows(
        self,
        table_id: str,
        filter: Filter | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """
        Scan rows in ascending key order.

        Without a filter the whole table is read; bounding the cost with
        limit or a key range is up to the caller.

        Raises:
            ValidationError: If limit is given and below 1
        """
        if limit is not None and limit < 1:
            raise ValidationError("limit must be a positive integer", details={"limit": limit})
        return await self._run("scan_rows", self._client.scan_rows, table_id, filter, limit)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def write_row(self, table_id: str, row_key: str | bytes, mutations: Sequence[Mutation]) -> None:
        """
        Apply mutations to a row as one atomic operation.

        Raises:
            ValidationError: If no mutations are given
        """
        if not mutations:
            raise ValidationError("At least one mutation is required", details={"table_id": table_id})
        await self._run("write_row", self._client.mutate_row, table_id, row_key, list(mutations))

    async def write_value(
        self,
        table_id: str,
        row_key: str | bytes,
        family: str,
        qualifier: str | bytes,
        value: str | bytes,
    ) -> None:
        """Write a single cell."""
        mutation = SetCell(family=family, qualifier=to_bytes(qualifier), value=to_bytes(value))
        await self.write_row(table_id, row_key, [mutation])

    async def delete_row(self, table_id: str, row_key: str | bytes) -> None:
        """Delete a row. Deleting a missing row is a no-op."""
        await self._run("delete_row", self._client.mutate_row, table_id, row_key, [DeleteRow()])

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close both storage clients and stop the worker pool."""
        # In-flight jobs finish on an open client
        self._executor.shutdown(wait=True)
        self._client.close()
        logger.info("Bigtable service closed")
