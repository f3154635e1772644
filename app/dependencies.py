# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends, Request

from core.services.bigtable_service import BigtableService


def get_bigtable_service(request: Request) -> BigtableService:
    """
    Get the Bigtable service instance.

    Returns the single service created during application startup.
    """
    return request.app.state.bigtable_service


# Type alias for dependency injection
BigtableServiceDep = Annotated[BigtableService, Depends(get_bigtable_service)]
