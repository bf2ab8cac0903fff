"""
Common schemas for API responses and error handling.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""

    error_code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")
    retry_after: Optional[int] = Field(None, description="Seconds to wait before retrying")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""

    error: ErrorDetail
    error_id: Optional[str] = None
    timestamp: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": {
                        "error_code": "SEAT_UNAVAILABLE",
                        "message": "1 selected seat(s) are no longer available",
                        "details": {
                            "conflicting_seat_ids": ["123e4567-e89b-12d3-a456-426614174000"]
                        },
                        "suggestions": [
                            "Refresh seat availability",
                            "Choose different seats"
                        ]
                    }
                }
            ]
        }
    }


class SweepResponse(BaseModel):
    """Result of an on-demand reaper sweep."""
    released_count: int
    succeeded: bool
