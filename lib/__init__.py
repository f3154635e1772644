# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - bigtable_client.py: Blocking wrapper around the Bigtable admin and data clients
# - filters.py: Helpers that build row filter trees
# - utils.py: Shared utilities (error base class, byte encoding)
#
# Import bigtable_client and filters by module path; they depend on
# core.models, which itself depends on lib.utils.
# =============================================================================

from lib.utils import ApplicationError, from_bytes, to_bytes

__all__ = [
    "ApplicationError",
    "from_bytes",
    "to_bytes",
]
