# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
#
# Two tiers:
# - ValidationError (400): malformed or missing request fields, raised
#   before any storage call is made
# - BackendError (500): anything the storage client reported
#
# A missing row on a single-row read is not an error in the service layer;
# the HTTP layer turns it into RowNotFoundError (404).
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BigtableApiException(Exception):
    """
    Base exception for the Bigtable API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "BIGTABLE_API_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "error": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Request Exceptions
# =============================================================================

class ValidationError(BigtableApiException):
    """Raised when a request is missing fields or has malformed values."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            suggestion="Fix the request body or parameters and retry",
            details=details,
        )


# =============================================================================
# Storage Exceptions
# =============================================================================

class BackendError(BigtableApiException):
    """
    Raised when the storage client fails.

    Carries the client's message unchanged. Transient and permanent
    failures are not distinguished.
    """

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=message,
            code="BACKEND_ERROR",
            status_code=500,
            details={"operation": operation, **(details or {})},
        )


class RowNotFoundError(BigtableApiException):
    """Raised when a single-row read finds nothing."""

    def __init__(self, table_id: str, row_key: str):
        super().__init__(
            message=f"Row {row_key} not found in table {table_id}",
            code="ROW_NOT_FOUND",
            status_code=404,
            suggestion="Check the row key, or scan the table to list existing rows",
            details={"table_id": table_id, "row_key": row_key},
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def bigtable_exception_handler(
    request: Request,
    exc: BigtableApiException
) -> JSONResponse:
    """
    Convert BigtableApiException to JSON response.

    Returns structured error with:
    - error: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors.

    FastAPI reports these as 422 by default; this API answers 400.
    """
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    logger.debug(f"Rejected request to {request.url.path}: {errors}")
    error = ValidationError(
        message="Invalid request: " + "; ".join(
            f"{e['field']}: {e['message']}" if e["field"] else e["message"] for e in errors
        ),
        details={"errors": errors},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())
