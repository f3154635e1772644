# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the storage-facing logic:
# - models/: Pydantic schemas for rows, cells, mutations and filters
# - services/: Async operation gateway over the Bigtable client
#
# Code in models/ should NOT import from FastAPI.
# This keeps the logic testable and reusable.
# =============================================================================
