# =============================================================================
# app/routers/rows.py - Row Endpoints
# =============================================================================
# Read, write, delete and scan rows.
#
# Row JSON shape:
#   {"key": "r1", "cells": [{"family": "cf", "qualifier": "q1", "value": "v1", "timestamp": 1700000000000000}]}
#
# Keys, qualifiers and values travel as UTF-8 strings.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Path, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.dependencies import BigtableServiceDep
from app.exceptions import RowNotFoundError
from core.models.filter import Filter
from core.models.response import MessageResponse
from core.models.row import Mutation

logger = logging.getLogger(__name__)

router = APIRouter()

TableId = Annotated[str, Path(min_length=1, description="Table ID")]
RowKey = Annotated[str, Path(min_length=1, description="Row key")]


# =============================================================================
# Request/Response Models
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WriteValueRequest(_CamelModel):
    """Body for writing a single cell."""

    table_id: str = Field(..., min_length=1, examples=["orders"])
    row_key: str = Field(..., min_length=1, examples=["order#0001"])
    family: str = Field(..., min_length=1, examples=["cf"])
    qualifier: str = Field(..., examples=["status"])
    value: str = Field(..., examples=["shipped"])


class WriteRowRequest(_CamelModel):
    """
    Body for applying several mutations to one row atomically.

    Example:
        {"mutations": [
            {"type": "setCell", "family": "cf", "qualifier": "status", "value": "shipped"},
            {"type": "setCell", "family": "cf", "qualifier": "carrier", "value": "ups"}
        ]}
    """

    mutations: list[Mutation] = Field(..., min_length=1)


class ReadRowsRequest(_CamelModel):
    """Body for reading several rows by key."""

    row_keys: list[str] = Field(..., description="Row keys to read")


class ScanRowsRequest(_CamelModel):
    """
    Body for a filtered scan.

    Example:
        {"filter": {"kind": "chain", "filters": [
            {"kind": "row_key_prefix", "prefix": "order#"},
            {"kind": "cells_per_column", "versions": 1}
        ]}, "limit": 50}
    """

    filter: Filter | None = None
    limit: int | None = Field(default=None, ge=1)


# =============================================================================
# Single Row Endpoints
# =============================================================================

@router.get("/tables/{table_id}/rows/{row_key}")
async def read_row(table_id: TableId, row_key: RowKey, service: BigtableServiceDep):
    """
    Read a row from a table.

    Returns 404 when the row does not exist.
    """
    row = await service.read_row(table_id, row_key)
    if row is None:
        raise RowNotFoundError(table_id, row_key)
    return row.to_response()


@router.post("/rows", response_model=MessageResponse)
async def write_value(request: WriteValueRequest, service: BigtableServiceDep):
    """
    Write a value to a row.
    """
    await service.write_value(
        request.table_id,
        request.row_key,
        request.family,
        request.qualifier,
        request.value,
    )
    return MessageResponse(message="Value written successfully")


@router.post("/tables/{table_id}/rows/{row_key}/mutations", response_model=MessageResponse)
async def write_row(
    table_id: TableId,
    row_key: RowKey,
    request: WriteRowRequest,
    service: BigtableServiceDep,
):
    """
    Apply a list of mutations to one row.

    All mutations are applied together or not at all.
    """
    await service.write_row(table_id, row_key, request.mutations)
    return MessageResponse(
        message=f"Applied {len(request.mutations)} mutations to row {row_key}"
    )


@router.delete("/tables/{table_id}/rows/{row_key}", response_model=MessageResponse)
async def delete_row(table_id: TableId, row_key: RowKey, service: BigtableServiceDep):
    """
    Delete a row from a table.

    Deleting a row that does not exist succeeds.
    """
    await service.delete_row(table_id, row_key)
    return MessageResponse(message=f"Row {row_key} deleted successfully from table {table_id}")


# =============================================================================
# Multi Row Endpoints
# =============================================================================

@router.get("/tables/{table_id}/rows")
async def scan_rows(
    table_id: TableId,
    service: BigtableServiceDep,
    limit: Annotated[int | None, Query(ge=1, description="Max rows to return")] = None,
):
    """
    Scan rows in a table.

    Rows come back in ascending key order. Without limit the whole table
    is read.
    """
    rows = await service.scan_rows(table_id, limit=limit)
    return {"rows": [row.to_response() for row in rows]}


@router.post("/tables/{table_id}/rows/scan")
async def scan_rows_filtered(
    table_id: TableId,
    request: ScanRowsRequest,
    service: BigtableServiceDep,
):
    """
    Scan rows with a filter.

    The filter is a tree of predicates tagged by `kind`; see
    core/models/filter.py for the available node types.
    """
    rows = await service.scan_rows(table_id, filter=request.filter, limit=request.limit)
    return {"rows": [row.to_response() for row in rows]}


@router.post("/tables/{table_id}/rows/batch")
async def read_rows(
    table_id: TableId,
    request: ReadRowsRequest,
    service: BigtableServiceDep,
):
    """
    Read several rows by key.

    Keys that don't exist are left out of the result.
    """
    rows = await service.read_rows(table_id, request.row_keys)
    logger.debug(f"Read {len(rows)} of {len(request.row_keys)} requested rows from {table_id}")
    return {"rows": {key: row.to_response() for key, row in rows.items()}}
