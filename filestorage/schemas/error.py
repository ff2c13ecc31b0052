"""
Pydantic schemas for error responses.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error response format.

    Examples:
        400: {"error": "checksum_not_available", "message": "..."}
        403: {"error": "forbidden", "message": "file is not public"}
        404: {"error": "not_found", "message": "File not found: a.txt"}
        413: {"error": "payload_too_large", "message": "maximum size exceeded"}
        501: {"error": "temporary_url_not_supported", "message": "..."}
    """

    error: str = Field(
        ...,
        description="Error code string",
        examples=["not_found", "checksum_not_available", "invalid_visibility"],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Optional additional error details",
    )
