# =============================================================================
# core/models/response.py - Shared Response Schemas
# =============================================================================
# Response bodies returned by more than one router.
# =============================================================================

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """
    Plain confirmation message.

    Example:
        {"message": "Table t1 created successfully"}
    """
    message: str
