# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .bigtable_service import BigtableService

__all__ = [
    "BigtableService",
]
