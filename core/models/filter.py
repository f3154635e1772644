# =============================================================================
# core/models/filter.py - Row Filter Expression Tree
# =============================================================================
# A filter is an immutable tree of leaf predicates joined by chain (AND)
# and interleave (OR) nodes. Each node type is tagged by `kind`, so a JSON
# body like:
#
#   {"kind": "chain", "filters": [
#       {"kind": "family", "family": "cf"},
#       {"kind": "qualifier", "qualifier": "q1"}
#   ]}
#
# parses straight into ChainFilter(filters=(FamilyFilter(...), QualifierFilter(...))).
#
# Trees carry no I/O and no identity; two trees built from the same inputs
# compare equal. Conversion to the storage SDK lives in lib/bigtable_client.py.
# =============================================================================

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _FilterNode(BaseModel):
    """Common configuration for every filter node."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Leaf Predicates
# =============================================================================

class FamilyFilter(_FilterNode):
    """Cells whose column family equals `family`."""
    kind: Literal["family"] = "family"
    family: str


class QualifierFilter(_FilterNode):
    """Cells whose column qualifier equals `qualifier`."""
    kind: Literal["qualifier"] = "qualifier"
    qualifier: bytes


class ValueFilter(_FilterNode):
    """Cells whose value equals `value`."""
    kind: Literal["value"] = "value"
    value: bytes


class ValuePrefixFilter(_FilterNode):
    """Cells whose value starts with `prefix`."""
    kind: Literal["value_prefix"] = "value_prefix"
    prefix: bytes


class RowKeyPrefixFilter(_FilterNode):
    """Rows whose key starts with `prefix`."""
    kind: Literal["row_key_prefix"] = "row_key_prefix"
    prefix: bytes


class RowKeyRangeFilter(_FilterNode):
    """Rows with start_key <= key < end_key."""
    kind: Literal["row_key_range"] = "row_key_range"
    start_key: bytes
    end_key: bytes


class TimestampRangeFilter(_FilterNode):
    """Cells with start_micros <= timestamp < end_micros."""
    kind: Literal["timestamp_range"] = "timestamp_range"
    start_micros: int = Field(..., ge=0)
    end_micros: int = Field(..., ge=0)


# =============================================================================
# Limit Predicates
# =============================================================================

class CellsPerRowFilter(_FilterNode):
    """Keep at most `limit` cells from each row."""
    kind: Literal["cells_per_row"] = "cells_per_row"
    limit: int


class CellsPerColumnFilter(_FilterNode):
    """Keep the `versions` most recent cells of each column."""
    kind: Literal["cells_per_column"] = "cells_per_column"
    versions: int = 1


# =============================================================================
# Combinators
# =============================================================================

class ChainFilter(_FilterNode):
    """
    Logical AND.

    Each filter is applied to the output of the previous one, in order.
    """
    kind: Literal["chain"] = "chain"
    filters: tuple[Filter, ...] = ()


class InterleaveFilter(_FilterNode):
    """
    Logical OR.

    Every filter sees the full input; the union of their outputs is kept.
    """
    kind: Literal["interleave"] = "interleave"
    filters: tuple[Filter, ...] = ()


Filter = Annotated[
    Union[
        FamilyFilter,
        QualifierFilter,
        ValueFilter,
        ValuePrefixFilter,
        RowKeyPrefixFilter,
        RowKeyRangeFilter,
        TimestampRangeFilter,
        CellsPerRowFilter,
        CellsPerColumnFilter,
        ChainFilter,
        InterleaveFilter,
    ],
    Field(discriminator="kind"),
]

ChainFilter.model_rebuild()
InterleaveFilter.model_rebuild()
