# =============================================================================
# core/models/row.py - Row, Cell and Mutation Schemas
# =============================================================================
# These models are the storage-agnostic view of Bigtable data:
# - Cell: one (family, qualifier, timestamp) -> value entry
# - Row: a key plus its cells, as returned by a read
# - SetCell / DeleteRow: single intended changes applied to a row
# - TableDefinition: table id plus per-family version retention
#
# All models are frozen. Reads return snapshots; nothing here is mutated
# after construction.
# =============================================================================

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from lib.utils import from_bytes


# =============================================================================
# Read Models
# =============================================================================

class Cell(BaseModel):
    """
    A single versioned value.

    Several cells may share family and qualifier; they differ by timestamp.
    """

    model_config = ConfigDict(frozen=True)

    family: str
    qualifier: bytes
    value: bytes
    # Microseconds since the epoch
    timestamp: int

    def to_response(self) -> dict[str, Any]:
        """Render the cell as JSON-safe strings."""
        return {
            "family": self.family,
            "qualifier": from_bytes(self.qualifier),
            "value": from_bytes(self.value),
            "timestamp": self.timestamp,
        }


class Row(BaseModel):
    """
    Immutable snapshot of one row.

    Cells keep the order the storage service returned them in
    (family, then qualifier, then newest timestamp first).

    Example response:
        {
            "key": "r1",
            "cells": [{"family": "cf", "qualifier": "q1", "value": "v1", "timestamp": 1700000000000000}]
        }
    """

    model_config = ConfigDict(frozen=True)

    key: bytes
    cells: tuple[Cell, ...] = ()

    def cells_for(self, family: str, qualifier: str | bytes) -> list[Cell]:
        """All versions stored in one column, newest first."""
        if isinstance(qualifier, str):
            qualifier = qualifier.encode("utf-8")
        return [c for c in self.cells if c.family == family and c.qualifier == qualifier]

    def to_response(self) -> dict[str, Any]:
        return {
            "key": from_bytes(self.key),
            "cells": [cell.to_response() for cell in self.cells],
        }


# =============================================================================
# Mutations
# =============================================================================

class SetCell(BaseModel):
    """
    Write one value into a column.

    When timestamp_micros is None the client stamps the cell with the
    current time.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    type: Literal["setCell"] = "setCell"
    family: str = Field(..., min_length=1)
    qualifier: bytes
    value: bytes
    timestamp_micros: int | None = Field(default=None, ge=0)


class DeleteRow(BaseModel):
    """Remove every cell in the row."""

    model_config = ConfigDict(frozen=True)

    type: Literal["deleteRow"] = "deleteRow"


Mutation = Annotated[Union[SetCell, DeleteRow], Field(discriminator="type")]


# =============================================================================
# Table Models
# =============================================================================

class TableDefinition(BaseModel):
    """
    Definition used to create a table.

    families maps each column family name to the number of versions
    retained per column.
    """

    model_config = ConfigDict(frozen=True)

    table_id: str = Field(..., min_length=1)
    families: dict[str, int]

    @field_validator("families")
    @classmethod
    def check_families(cls, families: dict[str, int]) -> dict[str, int]:
        if not families:
            raise ValueError("at least one column family is required")
        for name, max_versions in families.items():
            if not name:
                raise ValueError("column family names must be non-empty")
            if max_versions < 1:
                raise ValueError(
                    f"maxVersions for family '{name}' must be a positive integer"
                )
        return families
