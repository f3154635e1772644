# =============================================================================
# app/routers/tables.py - Table Management Endpoints
# =============================================================================
# List, create, inspect and delete Bigtable tables.
# Create and delete are idempotent: an existing table is left alone and a
# missing table is not an error.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.dependencies import BigtableServiceDep
from core.models.response import MessageResponse


router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class CreateTableRequest(BaseModel):
    """Body for creating a table."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {"tableId": "orders", "families": {"cf": 1, "history": 5}}
        },
    )

    table_id: str = Field(..., min_length=1, description="Table ID")
    families: dict[str, int] = Field(
        ...,
        description="Column family name -> max versions kept per column"
    )


class TableListResponse(BaseModel):
    """Response for listing tables."""
    tables: list[str]


class TableExistsResponse(BaseModel):
    """Response for checking a table."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    table_id: str
    exists: bool


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=TableListResponse)
async def list_tables(service: BigtableServiceDep):
    """
    List all tables in the Bigtable instance.
    """
    tables = await service.list_tables()
    return TableListResponse(tables=tables)


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_table(request: CreateTableRequest, service: BigtableServiceDep):
    """
    Create a new table.

    If the table already exists it is left unchanged and the call still
    succeeds.
    """
    await service.create_table(request.table_id, request.families)
    return MessageResponse(message=f"Table {request.table_id} created successfully")


@router.get(
    "/{table_id}",
    response_model=TableExistsResponse,
    response_model_by_alias=True,
)
async def get_table(
    table_id: Annotated[str, Path(min_length=1, description="Table ID")],
    service: BigtableServiceDep,
):
    """
    Check whether a table exists.
    """
    exists = await service.table_exists(table_id)
    return TableExistsResponse(table_id=table_id, exists=exists)


@router.delete("/{table_id}", response_model=MessageResponse)
async def delete_table(
    table_id: Annotated[str, Path(min_length=1, description="Table ID")],
    service: BigtableServiceDep,
):
    """
    Delete a table.

    Deleting a table that does not exist succeeds.
    """
    await service.delete_table(table_id)
    return MessageResponse(message=f"Table {table_id} deleted successfully")
