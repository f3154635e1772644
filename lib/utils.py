# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application.
# =============================================================================

from typing import Any


# =============================================================================
# Byte Utilities
# =============================================================================

def to_bytes(value: str | bytes) -> bytes:
    """
    Encode a row key, qualifier or value for the storage API.

    Strings are UTF-8 encoded; bytes pass through unchanged.

    Example:
        to_bytes("r1")   # b"r1"
        to_bytes(b"r1")  # b"r1"
    """
    return value if isinstance(value, bytes) else value.encode("utf-8")


def from_bytes(value: bytes | str) -> str:
    """
    Decode bytes returned by the storage API for JSON output.

    Invalid UTF-8 sequences are replaced rather than raising, since
    keys and values are opaque byte strings.
    """
    if isinstance(value, str):
        return value
    return value.decode("utf-8", errors="replace")


# =============================================================================
# Base Error Class
# =============================================================================

class ApplicationError(Exception):
    """
    Base error class for application-specific errors.

    Provides actionable error messages following the principle:
    "Errors should tell HOW to fix, not just WHAT failed."

    Attributes:
        code: Error code for categorization
        message: Human-readable error message
        suggestion: Actionable suggestion for fixing the error
        details: Additional context for debugging

    Example:
        class MyServiceError(ApplicationError):
            def __init__(self, message: str, **kwargs):
                super().__init__(message, code="MY_SERVICE_ERROR", **kwargs)
    """

    def __init__(
        self,
        message: str,
        code: str = "APPLICATION_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f"\n  Suggestion: {self.suggestion}"
        return result
