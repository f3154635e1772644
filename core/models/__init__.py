# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for Bigtable data:
# - row.py: Row, Cell, mutation and table definition schemas
# - filter.py: Row filter expression tree (tagged by `kind`)
# - response.py: Response bodies shared by routers
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Row Models - Rows, cells, mutations and tables
# -----------------------------------------------------------------------------
from .row import (
    Cell,
    DeleteRow,
    Mutation,
    Row,
    SetCell,
    TableDefinition,
)

# -----------------------------------------------------------------------------
# Filter Models - Composable row filters
# -----------------------------------------------------------------------------
from .filter import (
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

# -----------------------------------------------------------------------------
# Response Models - Shared HTTP response bodies
# -----------------------------------------------------------------------------
from .response import MessageResponse

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # Rows
    "Cell",
    "DeleteRow",
    "Mutation",
    "Row",
    "SetCell",
    "TableDefinition",
    # Filters
    "CellsPerColumnFilter",
    "CellsPerRowFilter",
    "ChainFilter",
    "FamilyFilter",
    "Filter",
    "InterleaveFilter",
    "QualifierFilter",
    "RowKeyPrefixFilter",
    "RowKeyRangeFilter",
    "TimestampRangeFilter",
    "ValueFilter",
    "ValuePrefixFilter",
    # Responses
    "MessageResponse",
]
