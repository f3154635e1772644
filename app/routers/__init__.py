# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - tables.py: Table list/create/inspect/delete endpoints
# - rows.py: Row read/write/delete/scan endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import tables
from . import rows

__all__ = [
    "health",
    "tables",
    "rows",
]
