# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Bigtable API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import (
    BigtableApiException,
    bigtable_exception_handler,
    validation_exception_handler,
)
from app.routers import health, tables, rows
from core.services.bigtable_service import BigtableService

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown:
    - Startup: Create the Bigtable clients and worker pool once
    - Shutdown: Close both clients and stop the worker pool
    """
    # Startup
    logger.info(f"Starting Bigtable API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    app.state.bigtable_service = BigtableService.from_settings(settings)

    yield

    # Shutdown
    logger.info("Shutting down Bigtable API")
    app.state.bigtable_service.close()


# Create FastAPI application
app = FastAPI(
    title="Bigtable API",
    description="""
## REST API for Google Cloud Bigtable

Thin HTTP layer over the Bigtable admin and data clients.

### Quick Start

```bash
# 1. Create a table with one column family keeping 1 version
curl -X POST http://localhost:8000/api/bigtable/tables \\
  -H "Content-Type: application/json" \\
  -d '{"tableId": "t1", "families": {"cf": 1}}'

# 2. Write a value
curl -X POST http://localhost:8000/api/bigtable/rows \\
  -H "Content-Type: application/json" \\
  -d '{"tableId": "t1", "rowKey": "r1", "family": "cf", "qualifier": "q1", "value": "v1"}'

# 3. Read it back
curl http://localhost:8000/api/bigtable/tables/t1/rows/r1

# 4. Scan
curl "http://localhost:8000/api/bigtable/tables/t1/rows?limit=10"
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Tables",
            "description": "Create, inspect, list and delete tables",
        },
        {
            "name": "Rows",
            "description": "Read, write, delete and scan rows",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(BigtableApiException)
async def handle_bigtable_exception(request: Request, exc: BigtableApiException):
    """Handle ValidationError, BackendError and RowNotFoundError."""
    return await bigtable_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    """Answer malformed bodies and parameters with 400."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Table management endpoints
app.include_router(
    tables.router,
    prefix="/api/bigtable/tables",
    tags=["Tables"]
)

# Row endpoints
app.include_router(
    rows.router,
    prefix="/api/bigtable",
    tags=["Rows"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Bigtable API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
