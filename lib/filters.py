# =============================================================================
# lib/filters.py - Filter Construction Helpers
# =============================================================================
# Small, pure functions that build filter trees for scans and reads.
# They only construct values; nothing here talks to the storage service.
#
# Usage:
#   from lib.filters import column_filter, latest_version_filter, chain_filter
#   f = chain_filter(column_filter("cf", "status"), latest_version_filter())
#   rows = await service.scan_rows("orders", filter=f, limit=100)
#
# Empty or odd combinations (e.g. chain_filter() with no arguments) are
# built as-is; the storage service decides whether to accept them.
# =============================================================================

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
from lib.utils import to_bytes


# =============================================================================
# Exact Match
# =============================================================================

def family_filter(family: str) -> Filter:
    """Match cells from the given column family."""
    return FamilyFilter(family=family)


def qualifier_filter(qualifier: str | bytes) -> Filter:
    """Match cells with the given column qualifier."""
    return QualifierFilter(qualifier=to_bytes(qualifier))


def value_filter(value: str | bytes) -> Filter:
    """Match cells holding exactly this value."""
    return ValueFilter(value=to_bytes(value))


# =============================================================================
# Prefix and Range
# =============================================================================

def value_prefix_filter(prefix: str | bytes) -> Filter:
    """Match cells whose value starts with prefix."""
    return ValuePrefixFilter(prefix=to_bytes(prefix))


def row_key_prefix_filter(prefix: str | bytes) -> Filter:
    """Match rows whose key starts with prefix."""
    return RowKeyPrefixFilter(prefix=to_bytes(prefix))


def row_key_range_filter(start_key: str | bytes, end_key: str | bytes) -> Filter:
    """
    Match rows with keys in [start_key, end_key).

    Args:
        start_key: First key included
        end_key: First key excluded
    """
    return RowKeyRangeFilter(start_key=to_bytes(start_key), end_key=to_bytes(end_key))


def timestamp_range_filter(start_micros: int, end_micros: int) -> Filter:
    """
    Match cells with timestamps in [start_micros, end_micros).

    Timestamps are microseconds since the epoch.
    """
    return TimestampRangeFilter(start_micros=start_micros, end_micros=end_micros)


# =============================================================================
# Limits
# =============================================================================

def limit_filter(limit: int) -> Filter:
    """Return at most `limit` cells per row."""
    return CellsPerRowFilter(limit=limit)


def latest_version_filter(versions: int = 1) -> Filter:
    """Return only the most recent `versions` cells of each column."""
    return CellsPerColumnFilter(versions=versions)


# =============================================================================
# Combinators
# =============================================================================

def chain_filter(*filters: Filter) -> Filter:
    """Logical AND, applied in the order given."""
    return ChainFilter(filters=tuple(filters))


def interleave_filter(*filters: Filter) -> Filter:
    """Logical OR: the union of what each filter matches."""
    return InterleaveFilter(filters=tuple(filters))


def column_filter(family: str, qualifier: str | bytes) -> Filter:
    """Match cells in a single column (family AND qualifier)."""
    return chain_filter(family_filter(family), qualifier_filter(qualifier))
